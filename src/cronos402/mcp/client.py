"""MCP client wrapper that pays for x402-priced tool calls."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..common import x402_VERSION
from ..config import (
    DEFAULT_MAX_PAYMENT_VALUE,
    ConfirmationCallback,
    Selection,
    X402ClientConfig,
)
from ..exact import PaymentSigner
from ..exceptions import (
    PaymentAmountExceededError,
    PaymentDeclinedError,
    PaymentError,
    UnsupportedNetworkError,
)
from ..types import PaymentRequirements
from .types import MCPToolResult
from .utils import (
    attach_payment_to_meta,
    convert_mcp_result,
    create_client_error_result,
    extract_payment_required_from_result,
)

logger = logging.getLogger(__name__)


def _same_requirement(a: PaymentRequirements, b: PaymentRequirements) -> bool:
    return (
        a.scheme == b.scheme
        and a.network == b.network
        and a.max_amount_required == b.max_amount_required
        and a.pay_to == b.pay_to
        and a.asset == b.asset
    )


def _pick_index(accepts: Sequence[PaymentRequirements], index: Any) -> Optional[PaymentRequirements]:
    if isinstance(index, bool) or not isinstance(index, int):
        return None
    if 0 <= index < len(accepts):
        return accepts[index]
    return None


def resolve_selection(
    accepts: Sequence[PaymentRequirements], selection: Selection
) -> Optional[PaymentRequirements]:
    """Turn a confirmation callback's answer into a requirement.

    Returns None for ``True`` and for anything malformed or out of range, in
    which case automatic selection applies.
    """
    if selection is True or selection is None:
        return None
    if isinstance(selection, PaymentRequirements):
        return next((a for a in accepts if _same_requirement(a, selection)), None)
    if isinstance(selection, int):
        return _pick_index(accepts, selection)
    if not isinstance(selection, Mapping):
        return None

    if "index" in selection:
        return _pick_index(accepts, selection["index"])
    if "network" in selection:
        return next(
            (
                a
                for a in accepts
                if a.network == selection["network"] and a.scheme == "exact"
            ),
            None,
        )
    if "requirement" in selection:
        wanted = selection["requirement"]
        if not isinstance(wanted, PaymentRequirements):
            try:
                wanted = PaymentRequirements.model_validate(wanted)
            except ValidationError:
                return None
        return next((a for a in accepts if _same_requirement(a, wanted)), None)
    return None


def select_payment_requirements(
    accepts: Sequence[PaymentRequirements], networks: Sequence[str]
) -> PaymentRequirements:
    """Automatic selection: exact on a payable network, else exact, else the first.

    Ties go to the server's ordering of ``accepts``.
    """
    for requirement in accepts:
        if requirement.scheme == "exact" and requirement.network in networks:
            return requirement
    for requirement in accepts:
        if requirement.scheme == "exact":
            return requirement
    return accepts[0]


def format_payment_description(annotations: Mapping[str, Any]) -> str:
    """Human readable price note appended to a paid tool's description.

    Args:
        annotations: Tool annotations carrying ``paymentHint`` and friends

    Returns:
        The note, starting with a space
    """
    price = annotations.get("paymentPriceUSD")
    cost = f"${price}" if price else "an unknown amount"
    note = f" (This is a paid tool, you will be charged {cost} for its execution)"

    networks = annotations.get("paymentNetworks")
    if isinstance(networks, list) and networks:
        note += "\n\nPayment Details:"
        for net in networks:
            asset = net.get("asset") or {}
            decimals = asset.get("decimals") or 6
            symbol = asset.get("symbol") or "tokens"
            amount = Decimal(str(net.get("maxAmountRequired", 0))) / (Decimal(10) ** decimals)
            note += (
                f"\n• {net.get('network')} ({str(net.get('type', 'evm')).upper()}): "
                f"{amount:.{decimals}f} {symbol}"
            )
            note += f"\n  Recipient: {net.get('recipient')}"
            note += f"\n  Asset: {asset.get('address')}"
    return note


def _tool_annotations(tool: Any) -> dict[str, Any]:
    annotations = tool.get("annotations") if isinstance(tool, Mapping) else getattr(tool, "annotations", None)
    if annotations is None:
        return {}
    if hasattr(annotations, "model_dump"):
        return annotations.model_dump(exclude_none=True)
    return dict(annotations) if isinstance(annotations, Mapping) else {}


class X402MCPClient:
    """x402-enabled MCP client that pays for tool calls when asked to.

    Wraps any object with an async ``call_tool(name, arguments, meta=...)``,
    such as ``mcp.ClientSession``. A payment-required rejection triggers one
    signed retry; everything else is returned as the server sent it.

    Example:
        ```python
        from cronos402 import create_signer
        from cronos402.mcp import X402MCPClient

        signer = create_signer("cronos-testnet", private_key)
        client = X402MCPClient(session, signer, max_payment_value=50_000)

        result = await client.call_tool("get_weather", {"city": "NYC"})
        ```
    """

    def __init__(
        self,
        mcp_client: Any,
        signer: PaymentSigner,
        *,
        max_payment_value: int = DEFAULT_MAX_PAYMENT_VALUE,
        version: int = x402_VERSION,
        confirmation_callback: Optional[ConfirmationCallback] = None,
    ):
        """Initialize x402 MCP client.

        Args:
            mcp_client: Underlying async MCP client
            signer: Signs payment authorizations
            max_payment_value: Largest atomic amount paid without failing
            version: x402 protocol version
            confirmation_callback: Optional callback choosing or declining a payment
        """
        self._mcp_client = mcp_client
        self._signer = signer
        self._max_payment_value = max_payment_value
        self._version = version
        self._confirmation_callback = confirmation_callback

    @property
    def client(self) -> Any:
        """Get underlying MCP client."""
        return self._mcp_client

    @property
    def signer(self) -> PaymentSigner:
        return self._signer

    def __getattr__(self, item: str) -> Any:
        return getattr(self._mcp_client, item)

    async def _call_mcp_tool(
        self,
        name: str,
        arguments: Optional[dict[str, Any]],
        meta: Optional[dict[str, Any]],
    ) -> MCPToolResult:
        result = await self._mcp_client.call_tool(name, arguments, meta=meta)
        return convert_mcp_result(result)

    async def _confirm(
        self, accepts: list[PaymentRequirements]
    ) -> Selection:
        if self._confirmation_callback is None:
            return True
        selection = self._confirmation_callback(accepts)
        if hasattr(selection, "__await__"):
            selection = await selection
        return selection

    async def call_tool(
        self,
        name: str,
        arguments: Optional[dict[str, Any]] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> MCPToolResult:
        """Call a tool, paying once if the server asks for payment.

        Args:
            name: Tool name
            arguments: Tool arguments
            meta: Request metadata, kept on the paid retry

        Returns:
            The first result if no payment was requested, otherwise the paid
            retry's result or a client-side error result
        """
        result = await self._call_mcp_tool(name, arguments, meta)

        payment_required = extract_payment_required_from_result(result)
        if payment_required is None:
            return result

        try:
            requirements = await self._choose_requirements(payment_required.accepts)
        except (PaymentError, UnsupportedNetworkError) as e:
            logger.info(f"Not paying for {name}: {e}")
            return create_client_error_result(self._version, e.reason, str(e))

        if requirements.scheme != "exact":
            return result

        token = self._signer.create_payment_header(requirements, self._version)
        if hasattr(token, "__await__"):
            token = await token
        logger.info(
            f"Paying {requirements.max_amount_required} on {requirements.network} for {name}"
        )

        return await self._call_mcp_tool(
            name, arguments, attach_payment_to_meta(meta, token)
        )

    async def _choose_requirements(
        self, accepts: list[PaymentRequirements]
    ) -> PaymentRequirements:
        """Pick the requirement to pay and check this client may pay it.

        Raises:
            PaymentDeclinedError: If the confirmation callback declined
            UnsupportedNetworkError: If the signer cannot pay on the chosen network
            PaymentAmountExceededError: If the amount is over the client cap
        """
        payable = list(self._signer.networks)

        selection = await self._confirm(accepts)
        if selection is False:
            raise PaymentDeclinedError("User declined payment")

        requirements = resolve_selection(accepts, selection)
        if requirements is None:
            requirements = select_payment_requirements(accepts, payable)
        if requirements.scheme != "exact":
            return requirements

        if requirements.network not in payable:
            raise UnsupportedNetworkError(
                f"Unsupported network: {requirements.network}. "
                f"This client pays on {', '.join(payable)}."
            )

        amount = int(requirements.max_amount_required)
        if amount > self._max_payment_value:
            raise PaymentAmountExceededError(
                f"Payment exceeds client cap: {amount} > {self._max_payment_value}"
            )
        return requirements

    async def list_tools(self, *args: Any, **kwargs: Any) -> Any:
        """List tools, appending a price note to paid tool descriptions."""
        result = await self._mcp_client.list_tools(*args, **kwargs)
        tools = result.get("tools", []) if isinstance(result, Mapping) else getattr(result, "tools", [])
        for tool in tools:
            annotations = _tool_annotations(tool)
            if not annotations.get("paymentHint"):
                continue
            note = format_payment_description(annotations)
            if isinstance(tool, dict):
                tool["description"] = f"{tool.get('description') or ''}{note}"
            else:
                tool.description = f"{tool.description or ''}{note}"
        return result


def with_x402_client(mcp_client: Any, config: X402ClientConfig) -> X402MCPClient:
    """Wrap an MCP client so paid tools are paid for automatically."""
    return X402MCPClient(
        mcp_client,
        config.signer,
        max_payment_value=config.max_payment_value,
        version=config.version,
        confirmation_callback=config.confirmation_callback,
    )
