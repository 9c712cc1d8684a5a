"""x402 monetization as a proxy hook.

The hook holds no per-call state: the result phase recomputes the price,
requirements and payment header from the original request.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..common import find_matching_payment_requirements
from ..config import X402Config
from ..encoding import decode_payment_header
from ..exceptions import InvalidPaymentError
from ..facilitator import FacilitatorGateway
from ..types import ErrorReason
from .hooks import ContinueRequest, ContinueResponse, RequestHookResult, RespondRequest
from .server import Authorization, PaymentPipeline
from .types import MCP_PAYMENT_RESPONSE_META_KEY, CallToolRequest, MCPToolResult
from .utils import convert_mcp_result, extract_payment_token

logger = logging.getLogger(__name__)

# Network names the proxy offers for the evm recipient shorthand
PROXY_NETWORKS = ("cronos", "cronos-testnet")


def _looks_failed(result: MCPToolResult) -> bool:
    """Error flag, or a lone text item mentioning an error."""
    if result.is_error:
        return True
    if len(result.content) == 1:
        item = result.content[0]
        if isinstance(item, Mapping) and item.get("type") == "text":
            return "error" in str(item.get("text", ""))
    return False


class X402MonetizationHook:
    """Charges for priced tools on calls passing through a proxy.

    Request phase rejects unpaid or invalid calls. Result phase settles the
    payment when the upstream tool succeeded.
    """

    name = "x402-monetization"

    def __init__(
        self,
        config: X402Config,
        facilitator: Optional[FacilitatorGateway] = None,
    ):
        self.config = config
        self.pipeline = PaymentPipeline(config, facilitator, networks=PROXY_NETWORKS)

    def _description(self, tool_name: str) -> str:
        return f"Paid access to {tool_name}"

    async def process_call_tool_request(
        self, request: CallToolRequest, extra: Optional[dict[str, Any]] = None
    ) -> RequestHookResult:
        price = self.pipeline.price_for(request.name)
        if not price:
            return ContinueRequest(request=request)

        outcome = await self.pipeline.authorize(
            request.name,
            price,
            meta=request.meta,
            headers=request.headers,
            description=self._description(request.name),
        )
        if isinstance(outcome, MCPToolResult):
            return RespondRequest(response=outcome)
        return ContinueRequest(request=request)

    def _recover_authorization(
        self, request: CallToolRequest
    ) -> Optional[Authorization]:
        price = self.pipeline.price_for(request.name)
        token = extract_payment_token(request.meta, request.headers)
        if not price or token is None:
            return None

        accepts = self.pipeline.requirements_for(
            request.name, price, self._description(request.name)
        )
        try:
            header = decode_payment_header(token)
        except InvalidPaymentError:
            return None
        requirements = find_matching_payment_requirements(accepts, header)
        if requirements is None:
            return None
        return Authorization(
            tool_name=request.name,
            header=header,
            requirements=requirements,
            payer=header.payload.from_,
        )

    async def process_call_tool_result(
        self,
        result: Any,
        request: CallToolRequest,
        extra: Optional[dict[str, Any]] = None,
    ) -> ContinueResponse:
        result = convert_mcp_result(result)
        authorization = self._recover_authorization(request)
        if authorization is None or _looks_failed(result):
            return ContinueResponse(response=result)

        try:
            settled = await self.pipeline.settle(authorization, result)
        except Exception as e:
            logger.error(f"Settlement for {request.name} raised: {e}")
            settled = self.pipeline.payment_required(ErrorReason.SETTLEMENT_FAILED, [])

        if not settled.is_error:
            response = settled.meta.get(MCP_PAYMENT_RESPONSE_META_KEY, {})
            settled.content.append(
                {
                    "type": "text",
                    "text": (
                        f"Payment settled on {response.get('network')} "
                        f"(tx: {response.get('transaction') or 'n/a'})."
                    ),
                }
            )
        return ContinueResponse(response=settled)

    async def process_list_tools_result(
        self, result: Any, extra: Optional[dict[str, Any]] = None
    ) -> ContinueResponse:
        """Add discovery annotations to every priced tool in a listing."""
        tools = result.get("tools", []) if isinstance(result, Mapping) else getattr(result, "tools", [])
        for tool in tools:
            name = tool.get("name") if isinstance(tool, Mapping) else getattr(tool, "name", None)
            price = self.pipeline.price_for(name) if name else None
            if not price:
                continue
            payment = self.pipeline.annotations_for(price)
            if isinstance(tool, dict):
                tool["annotations"] = {**(tool.get("annotations") or {}), **payment}
                continue
            existing = getattr(tool, "annotations", None)
            if hasattr(existing, "model_dump"):
                existing = existing.model_dump(exclude_none=True)
            merged = {**(existing or {}), **payment}
            if hasattr(type(tool), "model_fields"):
                from mcp.types import ToolAnnotations

                tool.annotations = ToolAnnotations(**merged)
            else:
                tool.annotations = merged
        return ContinueResponse(response=result)
