"""Type definitions for MCP transport integration."""

from typing import Any, Optional

# Protocol constants for MCP x402 payment integration.
MCP_PAYMENT_META_KEY = "x402/payment"
MCP_PAYMENT_ERROR_META_KEY = "x402/error"
MCP_PAYMENT_RESPONSE_META_KEY = "x402/payment-response"
PAYMENT_HEADER_NAME = "X-PAYMENT"


class CallToolRequest:
    """An inbound tool call as seen by hooks and the payment pipeline."""

    def __init__(
        self,
        name: str,
        arguments: Optional[dict[str, Any]] = None,
        meta: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        """Initialize tool call request.

        Args:
            name: Tool name
            arguments: Tool arguments
            meta: Request ``_meta`` field
            headers: Transport headers, when the transport has them
        """
        self.name = name
        self.arguments = arguments or {}
        self.meta = meta or {}
        self.headers = headers or {}


class MCPToolContext:
    """Context passed to a paid tool handler."""

    def __init__(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        meta: Optional[dict[str, Any]] = None,
        payer: Optional[str] = None,
    ):
        """Initialize tool context.

        Args:
            tool_name: Name of the tool being called
            arguments: Tool arguments
            meta: Request metadata
            payer: Payer address reported by verification
        """
        self.tool_name = tool_name
        self.arguments = arguments
        self.meta = meta or {}
        self.payer = payer


class MCPToolResult:
    """Result from an MCP tool call."""

    def __init__(
        self,
        content: list[dict[str, Any]],
        is_error: bool = False,
        meta: Optional[dict[str, Any]] = None,
        structured_content: Optional[dict[str, Any]] = None,
    ):
        """Initialize tool result.

        Args:
            content: Content items
            is_error: Whether this is an error result
            meta: Optional metadata
            structured_content: Optional structured content
        """
        self.content = content
        self.is_error = is_error
        self.meta = meta or {}
        self.structured_content = structured_content

    def to_dict(self) -> dict[str, Any]:
        """MCP wire form of the result."""
        data: dict[str, Any] = {"content": self.content, "isError": self.is_error}
        if self.meta:
            data["_meta"] = self.meta
        if self.structured_content is not None:
            data["structuredContent"] = self.structured_content
        return data
