"""MCP server payment pipeline for x402 integration."""

from __future__ import annotations

import inspect
import logging
import typing
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence, Union

from ..common import (
    build_payment_annotations,
    build_payment_requirements,
    find_matching_payment_requirements,
    normalize_recipients,
)
from ..config import PaymentSettledEvent, X402Config
from ..encoding import decode_payment_header
from ..exceptions import InvalidPaymentError
from ..facilitator import FacilitatorClient, FacilitatorGateway
from ..networks import SUPPORTED_CRONOS_NETWORKS
from ..types import (
    ErrorReason,
    PaymentHeader,
    PaymentRequirements,
    PaymentResponse,
    Price,
    SettleResponse,
    VerifyResponse,
)
from .types import MCPToolContext, MCPToolResult
from .utils import (
    attach_payment_response_to_meta,
    create_payment_required_result,
    extract_payment_token,
    to_tool_result,
)

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context as FastMCPContext

logger = logging.getLogger(__name__)

# Tool handler type for create_payment_wrapper
ToolHandler = Callable[
    [dict[str, Any], MCPToolContext],
    Union[MCPToolResult, dict[str, Any], str, Awaitable[Any]],
]


@dataclass
class Authorization:
    """A verified payment, ready to be settled once the tool has run."""

    tool_name: str
    header: PaymentHeader
    requirements: PaymentRequirements
    payer: Optional[str] = None


class PaymentPipeline:
    """Gates tool calls behind verified payments.

    Per call: build requirements, extract and decode the token, match, verify,
    run the tool, and settle only if the tool succeeded. Every failure comes
    back as a structured ``x402/error`` result, never as an exception.
    """

    def __init__(
        self,
        config: X402Config,
        facilitator: Optional[FacilitatorGateway] = None,
        networks: Sequence[str] = SUPPORTED_CRONOS_NETWORKS,
    ):
        """Initialize the pipeline.

        Args:
            config: Server payment configuration
            facilitator: Verify/settle gateway, an HTTP FacilitatorClient by default
            networks: Networks the ``evm`` recipient shorthand expands to
        """
        self.config = config
        self.facilitator = facilitator or FacilitatorClient(config.facilitator)
        self.recipients = normalize_recipients(config.recipient, networks)

    @property
    def version(self) -> int:
        return self.config.version

    def price_for(self, tool_name: str) -> Optional[Price]:
        return self.config.price_for(tool_name)

    def requirements_for(
        self, tool_name: str, price: Price, description: Optional[str] = None
    ) -> list[PaymentRequirements]:
        return build_payment_requirements(
            tool_name,
            description,
            price,
            self.recipients,
            token=self.config.token,
            max_timeout_seconds=self.config.max_timeout_seconds,
        )

    def annotations_for(self, price: Price) -> dict[str, Any]:
        """Discovery annotations for a priced tool descriptor."""
        return build_payment_annotations(
            price, self.recipients, self.version, token=self.config.token
        )

    def payment_required(
        self, error: str, accepts: Sequence[PaymentRequirements], **extra: Any
    ) -> MCPToolResult:
        return create_payment_required_result(self.version, error, accepts, **extra)

    async def _verify(
        self, header: PaymentHeader, requirements: PaymentRequirements
    ) -> VerifyResponse:
        try:
            return await self.facilitator.verify(header, requirements)
        except Exception as e:
            logger.warning(f"Payment verification raised: {e}")
            return VerifyResponse(
                is_valid=False, invalid_reason=f"FACILITATOR_NETWORK_ERROR: {e}"
            )

    async def _settle(
        self, header: PaymentHeader, requirements: PaymentRequirements
    ) -> SettleResponse:
        try:
            return await self.facilitator.settle(header, requirements)
        except Exception as e:
            logger.warning(f"Payment settlement raised: {e}")
            return SettleResponse(
                success=False, error_reason=ErrorReason.SETTLEMENT_FAILED
            )

    async def authorize(
        self,
        tool_name: str,
        price: Price,
        meta: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        description: Optional[str] = None,
    ) -> Union[Authorization, MCPToolResult]:
        """Check the payment attached to a call to a priced tool.

        Returns:
            Authorization when the facilitator accepted the payment, otherwise
            the payment-required result to send back
        """
        accepts = self.requirements_for(tool_name, price, description)
        if not accepts:
            return self.payment_required(ErrorReason.PRICE_COMPUTE_FAILED, accepts)

        token = extract_payment_token(meta, headers)
        if token is None:
            return self.payment_required(ErrorReason.PAYMENT_REQUIRED, accepts)

        try:
            header = decode_payment_header(token)
        except InvalidPaymentError as e:
            logger.warning(f"Rejecting payment for {tool_name}: {e}")
            return self.payment_required(ErrorReason.INVALID_PAYMENT, accepts)

        requirements = find_matching_payment_requirements(accepts, header)
        if requirements is None:
            return self.payment_required(
                ErrorReason.UNABLE_TO_MATCH_PAYMENT_REQUIREMENTS, accepts
            )

        verify = await self._verify(header, requirements)
        logger.debug(f"Verify {tool_name} on {requirements.network}: {verify.is_valid}")
        if not verify.is_valid:
            return self.payment_required(
                verify.invalid_reason or ErrorReason.INVALID_PAYMENT,
                accepts,
                payer=verify.payer,
            )

        return Authorization(
            tool_name=tool_name,
            header=header,
            requirements=requirements,
            payer=verify.payer,
        )

    async def _notify_settled(
        self, authorization: Authorization, response: SettleResponse
    ) -> None:
        callback = self.config.on_payment_settled
        if callback is None:
            return
        event = PaymentSettledEvent(
            tool_name=authorization.tool_name,
            transaction_hash=response.transaction,
            network=response.network or authorization.requirements.network,
            payer=response.payer or authorization.payer,
            amount=authorization.requirements.max_amount_required,
        )
        try:
            outcome = callback(event)
            if hasattr(outcome, "__await__"):
                await outcome
        except Exception as e:
            logger.error(f"on_payment_settled callback failed: {e}")

    async def settle(
        self, authorization: Authorization, result: MCPToolResult
    ) -> MCPToolResult:
        """Settle a verified payment after the tool succeeded.

        The tool result is augmented with ``x402/payment-response`` on success.
        On failure a payment-required result with no ``accepts`` replaces it,
        although the tool has already run.
        """
        response = await self._settle(authorization.header, authorization.requirements)
        if not response.success:
            logger.warning(
                f"Settlement failed for {authorization.tool_name}: {response.error_reason}"
            )
            return self.payment_required(
                response.error_reason or ErrorReason.SETTLEMENT_FAILED, []
            )

        logger.info(
            f"Payment settled for {authorization.tool_name} on "
            f"{response.network or authorization.requirements.network}: {response.transaction}"
        )
        await self._notify_settled(authorization, response)
        return attach_payment_response_to_meta(
            result,
            PaymentResponse(
                success=True,
                transaction=response.transaction,
                network=response.network or authorization.requirements.network,
                payer=response.payer or authorization.payer,
            ),
        )

    async def run(
        self,
        tool_name: str,
        execute: Callable[[Optional[Authorization]], Any],
        meta: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        price: Optional[Price] = None,
        description: Optional[str] = None,
    ) -> MCPToolResult:
        """Run one tool call through the payment state machine.

        Args:
            tool_name: Name of the tool being called
            execute: Runs the tool; receives the Authorization (None if unpriced)
            meta: Request ``_meta``
            headers: Transport headers, consulted when ``_meta`` has no token
            price: Price override, the configured price table otherwise
            description: Requirement description

        Returns:
            The tool result, possibly annotated, or a payment-required result
        """
        if price is None:
            price = self.price_for(tool_name)
        if not price:
            result = execute(None)
            if hasattr(result, "__await__"):
                result = await result
            return to_tool_result(result)

        outcome = await self.authorize(tool_name, price, meta, headers, description)
        if isinstance(outcome, MCPToolResult):
            return outcome

        try:
            result = execute(outcome)
            if hasattr(result, "__await__"):
                result = await result
            result = to_tool_result(result)
        except Exception as e:
            logger.warning(f"Tool {tool_name} raised, payment not settled: {e}")
            return MCPToolResult(
                content=[{"type": "text", "text": f"Tool execution failed: {e}"}],
                is_error=True,
            )

        if result.is_error:
            return result
        return await self.settle(outcome, result)


def create_payment_wrapper(
    pipeline: PaymentPipeline,
    price: Optional[Price] = None,
    description: Optional[str] = None,
) -> Callable[[ToolHandler], Callable[[dict[str, Any], dict[str, Any]], Awaitable[MCPToolResult]]]:
    """Create a payment wrapper for MCP tool handlers.

    Returns a function that wraps ``(args, MCPToolContext)`` handlers with
    payment logic. The wrapped handler takes ``(args, extra)`` where ``extra``
    carries ``_meta``, ``toolName`` and optionally ``headers``.

    Args:
        pipeline: The payment pipeline
        price: Price for the wrapped tool, the config price table otherwise
        description: Requirement description

    Example:
        ```python
        pipeline = PaymentPipeline(X402Config(recipient={...}, prices={"weather": "0.01"}))
        paid = create_payment_wrapper(pipeline)

        @paid
        async def weather(args, context):
            return {"content": [{"type": "text", "text": "Sunny"}]}

        result = await weather({"city": "Paris"}, {"_meta": meta, "toolName": "weather"})
        ```
    """

    def wrapper(handler: ToolHandler):
        async def wrapped_handler(
            args: dict[str, Any], extra: dict[str, Any]
        ) -> MCPToolResult:
            meta = extra.get("_meta", {})
            if not isinstance(meta, dict):
                meta = {}
            tool_name = extra.get("toolName") or getattr(handler, "__name__", "paid_tool")

            def execute(authorization: Optional[Authorization]) -> Any:
                context = MCPToolContext(
                    tool_name=tool_name,
                    arguments=args,
                    meta=meta,
                    payer=authorization.payer if authorization else None,
                )
                return handler(args, context)

            return await pipeline.run(
                tool_name,
                execute,
                meta=meta,
                headers=extra.get("headers"),
                price=price,
                description=description,
            )

        return wrapped_handler

    return wrapper


# ============================================================================
# FastMCP Integration
# ============================================================================


def _extract_meta_from_fastmcp_context(ctx: FastMCPContext | Any) -> dict[str, Any]:
    """Extract _meta dict from an MCP SDK Context object.

    The MCP SDK stores request metadata on ``ctx.request_context.meta`` (a
    ``RequestParams.Meta`` Pydantic model whose extra keys hold ``x402/payment``).

    Returns:
        The extracted metadata as a plain dict, or an empty dict outside a request
    """
    try:
        req_ctx = getattr(ctx, "request_context", None)
    except ValueError:
        return {}
    raw_meta = getattr(req_ctx, "meta", None)
    if raw_meta is None:
        return {}
    if hasattr(raw_meta, "model_dump"):
        return raw_meta.model_dump()
    if isinstance(raw_meta, Mapping):
        return dict(raw_meta)
    return {}


def _extract_headers_from_fastmcp_context(ctx: FastMCPContext | Any) -> dict[str, str]:
    """HTTP headers of the current request, empty for stdio transports."""
    try:
        req_ctx = getattr(ctx, "request_context", None)
    except ValueError:
        return {}
    headers = getattr(getattr(req_ctx, "request", None), "headers", None)
    if headers is None:
        return {}
    return {str(k): str(v) for k, v in headers.items()}


def _mcp_tool_result_to_call_tool_result(result: MCPToolResult) -> Any:
    """Convert an MCPToolResult to an MCP SDK CallToolResult.

    Imports MCP SDK types lazily to avoid hard dependency.
    """
    from mcp.types import CallToolResult, TextContent

    content = []
    for item in result.content:
        if isinstance(item, dict) and item.get("type", "text") == "text":
            content.append(TextContent(type="text", text=item.get("text", "")))
        elif isinstance(item, dict):
            content.append(item)
        else:
            content.append(TextContent(type="text", text=str(item)))

    return CallToolResult.model_validate(
        {
            "content": content,
            "isError": result.is_error,
            "structuredContent": result.structured_content,
            "_meta": result.meta or None,
        }
    )


def _paid_tool_bridge(
    pipeline: PaymentPipeline,
    fn: Callable[..., Any],
    name: str,
    description: str,
    price: Price,
) -> Callable[..., Awaitable[Any]]:
    """Wrap a FastMCP-style tool function so calls go through the pipeline.

    The bridge keeps ``fn``'s parameters for the input schema and adds a
    Context parameter, reusing ``fn``'s own if it declares one.
    """
    from mcp.server.fastmcp import Context
    from mcp.types import CallToolResult

    signature = inspect.signature(fn)
    hints = typing.get_type_hints(fn)
    params = [
        p.replace(annotation=hints.get(p.name, p.annotation))
        for p in signature.parameters.values()
    ]

    ctx_name = next(
        (
            p.name
            for p in params
            if inspect.isclass(p.annotation) and issubclass(p.annotation, Context)
        ),
        None,
    )
    passes_context = ctx_name is not None
    if ctx_name is None:
        ctx_name = "x402_ctx" if "ctx" in signature.parameters else "ctx"
        params.append(
            inspect.Parameter(
                ctx_name, inspect.Parameter.KEYWORD_ONLY, annotation=Context, default=None
            )
        )

    async def bridge(**kwargs: Any) -> Any:
        ctx = kwargs.get(ctx_name) if passes_context else kwargs.pop(ctx_name, None)
        result = await pipeline.run(
            name,
            lambda _authorization: fn(**kwargs),
            meta=_extract_meta_from_fastmcp_context(ctx),
            headers=_extract_headers_from_fastmcp_context(ctx),
            price=price,
            description=description,
        )
        return _mcp_tool_result_to_call_tool_result(result)

    bridge.__name__ = getattr(fn, "__name__", name)
    bridge.__doc__ = description
    bridge.__signature__ = signature.replace(  # type: ignore[attr-defined]
        parameters=params, return_annotation=CallToolResult
    )
    bridge.__annotations__ = {
        **{p.name: p.annotation for p in params if p.annotation is not inspect.Parameter.empty},
        "return": CallToolResult,
    }
    return bridge


class X402McpServer:
    """A FastMCP server augmented with ``paid_tool``.

    Everything else is delegated to the wrapped server.
    """

    def __init__(
        self,
        server: Any,
        config: X402Config,
        facilitator: Optional[FacilitatorGateway] = None,
    ):
        self.server = server
        self.pipeline = PaymentPipeline(config, facilitator)

    def __getattr__(self, item: str) -> Any:
        return getattr(self.server, item)

    def paid_tool(
        self,
        name: str,
        description: str,
        price: Price,
        annotations: Any = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a priced tool.

        The tool descriptor carries discovery annotations (``paymentHint``,
        ``paymentPriceUSD``, ``paymentNetworks``, ``paymentVersion``) so clients
        can see the price before calling.

        Args:
            name: Tool name
            description: Tool description, also used in payment requirements
            price: USD price per call
            annotations: Optional ToolAnnotations or dict of MCP tool hints
        """
        from mcp.types import ToolAnnotations

        hints: dict[str, Any] = {}
        if annotations is not None:
            hints = (
                annotations.model_dump(exclude_none=True)
                if hasattr(annotations, "model_dump")
                else dict(annotations)
            )
        hints.update(self.pipeline.annotations_for(price))

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            bridge = _paid_tool_bridge(self.pipeline, fn, name, description, price)
            self.server.add_tool(
                bridge,
                name=name,
                description=description,
                annotations=ToolAnnotations(**hints),
            )
            return fn

        return decorator


def with_x402(
    server: Any,
    config: X402Config,
    facilitator: Optional[FacilitatorGateway] = None,
) -> X402McpServer:
    """Augment a FastMCP server with paid tools.

    Example:
        ```python
        mcp = with_x402(FastMCP("weather"), X402Config(recipient={"evm": {"address": "0x..."}}))

        @mcp.paid_tool("forecast", "Five day forecast", "$0.01")
        async def forecast(city: str) -> str:
            ...
        ```
    """
    return X402McpServer(server, config, facilitator)
