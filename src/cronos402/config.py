"""Server and client configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from cronos402.common import (
    DEFAULT_MAX_TIMEOUT_SECONDS,
    RecipientConfig,
    normalize_recipients,
    x402_VERSION,
)
from cronos402.exceptions import ConfigurationError
from cronos402.exact import PaymentSigner, create_signer
from cronos402.facilitator import FacilitatorConfig
from cronos402.networks import CRONOS_TESTNET, DEFAULT_FACILITATOR_URL
from cronos402.types import PaymentRequirements, Price, PricedOperationTable

# 0.10 USDC.e in atomic units
DEFAULT_MAX_PAYMENT_VALUE = 100_000


@dataclass
class PaymentSettledEvent:
    """Passed to ``on_payment_settled`` after a successful settlement."""

    tool_name: str
    transaction_hash: Optional[str]
    network: Optional[str]
    payer: Optional[str]
    amount: str
    status: str = "completed"


PaymentSettledCallback = Callable[[PaymentSettledEvent], Union[None, Awaitable[None]]]

# Returns False (decline), True (default selection), an index, or a dict with
# "index", "network" or "requirement"
Selection = Union[bool, int, Mapping[str, Any], PaymentRequirements, None]
ConfirmationCallback = Callable[
    [list[PaymentRequirements]], Union[Selection, Awaitable[Selection]]
]


@dataclass
class X402Config:
    """Server-side payment configuration.

    ``prices`` maps tool names to USD prices. It is frozen on construction so
    one config can be shared by concurrent calls.
    """

    recipient: RecipientConfig
    prices: PricedOperationTable = field(default_factory=dict)
    facilitator: FacilitatorConfig = field(default_factory=FacilitatorConfig)
    version: int = x402_VERSION
    token: str = "USDC.e"
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    on_payment_settled: Optional[PaymentSettledCallback] = None

    def __post_init__(self):
        if not normalize_recipients(self.recipient):
            raise ConfigurationError(
                "recipient must name at least one Cronos network address"
            )
        if self.token not in ("USDC.e", "CRO"):
            raise ConfigurationError(f"Unsupported token: {self.token}")
        self.prices = MappingProxyType(dict(self.prices))

    @property
    def recipients(self) -> dict[str, str]:
        """network -> recipient address, in configuration order."""
        return normalize_recipients(self.recipient)

    def price_for(self, tool_name: str) -> Optional[Price]:
        return self.prices.get(tool_name)


@dataclass
class X402ClientConfig:
    """Client-side payment configuration."""

    signer: PaymentSigner
    max_payment_value: int = DEFAULT_MAX_PAYMENT_VALUE
    version: int = x402_VERSION
    confirmation_callback: Optional[ConfirmationCallback] = None


def facilitator_config_from_env(environ: Mapping[str, str] = os.environ) -> FacilitatorConfig:
    """Read ``X402_FACILITATOR_URL``, defaulting to the Cronos facilitator."""
    return FacilitatorConfig(url=environ.get("X402_FACILITATOR_URL") or DEFAULT_FACILITATOR_URL)


def client_config_from_env(environ: Mapping[str, str] = os.environ) -> X402ClientConfig:
    """Build a client configuration from environment variables.

    ``CRONOS_PRIVATE_KEY`` is required; ``CRONOS_NETWORK`` defaults to
    ``cronos-testnet`` and ``X402_MAX_ATOMIC`` to 0.10 USDC.e.

    Raises:
        ConfigurationError: If the key is missing or a value is malformed
    """
    private_key = environ.get("CRONOS_PRIVATE_KEY")
    if not private_key:
        raise ConfigurationError("CRONOS_PRIVATE_KEY is not set")
    network = environ.get("CRONOS_NETWORK") or CRONOS_TESTNET

    max_atomic = environ.get("X402_MAX_ATOMIC")
    try:
        max_payment_value = int(max_atomic) if max_atomic else DEFAULT_MAX_PAYMENT_VALUE
    except ValueError:
        raise ConfigurationError(f"X402_MAX_ATOMIC must be an integer, got {max_atomic}")

    try:
        signer = create_signer(network, private_key)
    except ValueError as e:
        raise ConfigurationError(f"Invalid CRONOS_PRIVATE_KEY: {e}") from e
    return X402ClientConfig(signer=signer, max_payment_value=max_payment_value)
