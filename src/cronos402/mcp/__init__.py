"""x402 payments for MCP tool calls on Cronos.

Server-side:
    ```python
    from mcp.server.fastmcp import FastMCP
    from cronos402 import X402Config
    from cronos402.mcp import with_x402

    mcp = with_x402(
        FastMCP("weather"),
        X402Config(recipient={"evm": {"address": "0x...", "is_testnet": True}}),
    )

    @mcp.paid_tool("get_weather", "Get weather", "$0.01")
    async def get_weather(city: str) -> str:
        return json.dumps({"city": city, "weather": "sunny"})
    ```

Client-side:
    ```python
    from cronos402.mcp import X402MCPClient

    client = X402MCPClient(session, create_signer("cronos-testnet", key))
    result = await client.call_tool("get_weather", {"city": "SF"})
    ```

The MCP SDK is only needed for FastMCP registration: pip install cronos402[mcp]
"""

from .client import X402MCPClient, with_x402_client
from .hooks import (
    ContinueRequest,
    ContinueResponse,
    Hook,
    HookChain,
    LoggingHook,
    RespondRequest,
)
from .payment_hook import X402MonetizationHook
from .server import (
    Authorization,
    PaymentPipeline,
    X402McpServer,
    create_payment_wrapper,
    with_x402,
)
from .types import (
    MCP_PAYMENT_ERROR_META_KEY,
    MCP_PAYMENT_META_KEY,
    MCP_PAYMENT_RESPONSE_META_KEY,
    PAYMENT_HEADER_NAME,
    CallToolRequest,
    MCPToolContext,
    MCPToolResult,
)

__all__ = [
    # Server
    "PaymentPipeline",
    "Authorization",
    "create_payment_wrapper",
    "with_x402",
    "X402McpServer",
    # Hooks
    "Hook",
    "HookChain",
    "LoggingHook",
    "X402MonetizationHook",
    "ContinueRequest",
    "ContinueResponse",
    "RespondRequest",
    # Client
    "X402MCPClient",
    "with_x402_client",
    # Types
    "CallToolRequest",
    "MCPToolContext",
    "MCPToolResult",
    # Constants
    "MCP_PAYMENT_META_KEY",
    "MCP_PAYMENT_ERROR_META_KEY",
    "MCP_PAYMENT_RESPONSE_META_KEY",
    "PAYMENT_HEADER_NAME",
]
