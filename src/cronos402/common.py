import logging
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence, Union

from eth_utils import to_checksum_address

from cronos402.exceptions import InvalidPriceError, X402Error
from cronos402.networks import (
    SUPPORTED_CRONOS_NETWORKS,
    KnownAsset,
    get_asset,
    get_chain_id,
    is_cronos_network,
)
from cronos402.types import (
    AssetInfo,
    EIP712Domain,
    PaymentAnnotations,
    PaymentHeader,
    PaymentNetworkInfo,
    PaymentRequirements,
    Price,
)

logger = logging.getLogger(__name__)

x402_VERSION = 1

DEFAULT_MAX_TIMEOUT_SECONDS = 300
DEFAULT_MIME_TYPE = "application/json"

# Either {"evm": {"address": ..., "is_testnet": ...}} shorthand, explicit
# {network: address} entries, or both
RecipientConfig = Mapping[str, Union[str, Mapping[str, Any]]]


def parse_price_usd(price: Price) -> Decimal:
    """Parse a USD price into a positive Decimal.

    Strings such as ``"$0.01"`` or ``"0.01 USD"`` are stripped of everything
    but digits and the decimal point.

    Raises:
        InvalidPriceError: If the price is unparsable or not positive
    """
    if isinstance(price, bool):
        raise InvalidPriceError(f"Invalid price: {price}")
    if isinstance(price, Mapping):
        # token-amount style {"amount": ...} or {"value": ...}
        price = price.get("amount", price.get("value"))
        if price is None or isinstance(price, Mapping):
            raise InvalidPriceError("Invalid price: missing amount")
    try:
        if isinstance(price, Decimal):
            value = price
        elif isinstance(price, (int, float)):
            # str() keeps 0.01 as 0.01 instead of its binary expansion
            value = Decimal(str(price))
        else:
            value = Decimal(re.sub(r"[^0-9.]", "", str(price)))
    except InvalidOperation:
        raise InvalidPriceError(f"Invalid price: {price}")
    if not value.is_finite() or value <= 0:
        raise InvalidPriceError(f"Invalid price: {price}")
    return value


def format_price_usd(price: Price) -> str:
    """Render a price for display, without the leading dollar sign."""
    if isinstance(price, Mapping):
        price = price.get("amount", price.get("value", ""))
    return str(price).strip().lstrip("$")


def price_to_atomic_amount(
    price: Price, network: str, token: str = "USDC.e"
) -> tuple[int, KnownAsset]:
    """Convert a USD price to atomic units of a Cronos asset.

    USDC.e is treated as 1:1 with USD. CRO has no oracle, so the USD figure
    is used as a CRO amount.

    Returns:
        (atomic amount, asset entry)
    """
    asset = get_asset(network, token)
    value = parse_price_usd(price)
    atomic = math.floor(value * (Decimal(10) ** asset["decimals"]))
    if atomic <= 0:
        raise InvalidPriceError(
            f"Price {price} is below the smallest unit of {asset['symbol']}"
        )
    return atomic, asset


def asset_domain(network: str, asset: KnownAsset) -> Optional[EIP712Domain]:
    """EIP-712 domain for assets that support gasless authorization."""
    if not asset["eip712_name"]:
        return None
    return EIP712Domain(
        name=asset["eip712_name"],
        version=asset["eip712_version"] or "1",
        chain_id=get_chain_id(network),
        verifying_contract=to_checksum_address(asset["address"]),
    )


def normalize_recipients(
    recipient: Optional[RecipientConfig],
    networks: Sequence[str] = SUPPORTED_CRONOS_NETWORKS,
) -> dict[str, str]:
    """Expand a recipient configuration into an ordered network -> address map.

    The ``evm`` shorthand expands to every network in ``networks`` matching its
    testnet flag (all of them when the flag is absent). Explicit per-network
    entries override the expansion. Keys that are not Cronos networks are
    ignored.
    """
    if not recipient or not isinstance(recipient, Mapping):
        return {}

    out: dict[str, str] = {}

    evm = recipient.get("evm")
    if isinstance(evm, Mapping) and isinstance(evm.get("address"), str):
        use_testnet = evm.get("is_testnet", evm.get("isTestnet"))
        for network in networks:
            if use_testnet is None or ("testnet" in network) == bool(use_testnet):
                out[network] = evm["address"]

    for key, value in recipient.items():
        if isinstance(value, str) and is_cronos_network(key):
            out[key] = value

    return out


def build_payment_requirements(
    tool_name: str,
    description: Optional[str],
    price: Price,
    recipients: Mapping[str, str],
    token: str = "USDC.e",
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS,
) -> list[PaymentRequirements]:
    """Build the ordered list of acceptable payment requirements for a tool.

    One requirement per network, in recipient insertion order. A network whose
    price or address cannot be resolved is skipped with a warning; an empty
    result means the price could not be computed anywhere.

    Args:
        tool_name: Name of the priced tool
        description: Human readable description, defaults to "Paid access to <tool>"
        price: USD price
        recipients: network -> recipient address
        token: Asset key to price in
        max_timeout_seconds: Authorization validity window offered to clients

    Returns:
        List of PaymentRequirements
    """
    requirements: list[PaymentRequirements] = []
    for network, pay_to in recipients.items():
        if not is_cronos_network(network) or not pay_to:
            continue
        try:
            amount, asset = price_to_atomic_amount(price, network, token)
            requirements.append(
                PaymentRequirements(
                    scheme="exact",
                    network=network,
                    max_amount_required=str(amount),
                    pay_to=to_checksum_address(pay_to),
                    asset=to_checksum_address(asset["address"]),
                    max_timeout_seconds=max_timeout_seconds,
                    resource=f"mcp://{tool_name}",
                    mime_type=DEFAULT_MIME_TYPE,
                    description=description or f"Paid access to {tool_name}",
                    extra=asset_domain(network, asset),
                )
            )
        except (X402Error, ValueError, TypeError) as e:
            logger.warning(
                f"Skipping payment requirement for {tool_name} on {network}: {e}"
            )
    logger.debug(f"Built {len(requirements)} payment requirements for {tool_name}")
    return requirements


def build_payment_networks(
    price: Price,
    recipients: Mapping[str, str],
    token: str = "USDC.e",
) -> list[PaymentNetworkInfo]:
    """Build the non-authoritative per-network pricing rows used for discovery."""
    rows: list[PaymentNetworkInfo] = []
    for network, pay_to in recipients.items():
        if not is_cronos_network(network) or not pay_to:
            continue
        try:
            amount, asset = price_to_atomic_amount(price, network, token)
        except (X402Error, ValueError) as e:
            logger.warning(f"Skipping payment network {network}: {e}")
            continue
        rows.append(
            PaymentNetworkInfo(
                network=network,
                recipient=pay_to,
                max_amount_required=str(amount),
                asset=AssetInfo(
                    address=asset["address"],
                    symbol=asset["symbol"],
                    decimals=asset["decimals"],
                ),
            )
        )
    return rows


def build_payment_annotations(
    price: Price,
    recipients: Mapping[str, str],
    version: int = x402_VERSION,
    token: str = "USDC.e",
) -> dict[str, Any]:
    """Discovery annotations attached to a priced tool descriptor."""
    return PaymentAnnotations(
        payment_hint=True,
        payment_price_usd=format_price_usd(price),
        payment_networks=build_payment_networks(price, recipients, token),
        payment_version=version,
    ).model_dump(by_alias=True)


def find_matching_payment_requirements(
    accepts: Sequence[PaymentRequirements], header: PaymentHeader
) -> Optional[PaymentRequirements]:
    """Select the requirement a payment header claims to satisfy.

    Matches on ``(network, scheme)`` only; amount, recipient and asset are
    checked by the facilitator during verification.
    """
    for requirement in accepts:
        if (
            requirement.network == header.network
            and requirement.scheme == header.scheme
        ):
            return requirement
    return None
