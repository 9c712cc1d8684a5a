"""cronos402 - x402 pay-per-call for MCP tools, settled on Cronos.

Quick Start:
    ```python
    from cronos402 import X402Config, build_payment_requirements, create_signer

    # Server-side: price a tool
    config = X402Config(
        recipient={"evm": {"address": "0x...", "is_testnet": True}},
        prices={"get_weather": "$0.01"},
    )

    # Client-side: sign payments
    signer = create_signer("cronos-testnet", private_key)
    token = signer.create_payment_header(requirements)
    ```
"""

from .common import (
    build_payment_annotations,
    build_payment_requirements,
    find_matching_payment_requirements,
    normalize_recipients,
    parse_price_usd,
    price_to_atomic_amount,
    x402_VERSION,
)
from .config import (
    PaymentSettledEvent,
    X402ClientConfig,
    X402Config,
    client_config_from_env,
    facilitator_config_from_env,
)
from .encoding import (
    decode_payment_header,
    decode_payment_response,
    encode_payment_header,
    encode_payment_response,
)
from .exact import EvmPaymentSigner, PaymentSigner, create_signer
from .exceptions import (
    ConfigurationError,
    FacilitatorError,
    InvalidPaymentError,
    InvalidPriceError,
    PaymentAmountExceededError,
    PaymentDeclinedError,
    PaymentError,
    UnsupportedNetworkError,
    X402Error,
)
from .facilitator import FacilitatorClient, FacilitatorConfig, FacilitatorGateway
from .networks import (
    CRONOS,
    CRONOS_MAINNET,
    CRONOS_TESTNET,
    SUPPORTED_CRONOS_NETWORKS,
    get_asset,
    get_chain_id,
    is_cronos_network,
)
from .types import (
    EIP712Domain,
    ErrorReason,
    ExactEvmPayload,
    PaymentHeader,
    PaymentRequiredPayload,
    PaymentRequirements,
    PaymentResponse,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "x402_VERSION",
    # Configuration
    "X402Config",
    "X402ClientConfig",
    "PaymentSettledEvent",
    "client_config_from_env",
    "facilitator_config_from_env",
    # Requirements
    "build_payment_requirements",
    "build_payment_annotations",
    "find_matching_payment_requirements",
    "normalize_recipients",
    "parse_price_usd",
    "price_to_atomic_amount",
    # Codec
    "encode_payment_header",
    "decode_payment_header",
    "encode_payment_response",
    "decode_payment_response",
    # Signing
    "PaymentSigner",
    "EvmPaymentSigner",
    "create_signer",
    # Facilitator
    "FacilitatorClient",
    "FacilitatorConfig",
    "FacilitatorGateway",
    # Networks
    "CRONOS",
    "CRONOS_MAINNET",
    "CRONOS_TESTNET",
    "SUPPORTED_CRONOS_NETWORKS",
    "get_asset",
    "get_chain_id",
    "is_cronos_network",
    # Types
    "EIP712Domain",
    "ErrorReason",
    "ExactEvmPayload",
    "PaymentHeader",
    "PaymentRequiredPayload",
    "PaymentRequirements",
    "PaymentResponse",
    "SettleResponse",
    "SupportedResponse",
    "VerifyResponse",
    # Exceptions
    "X402Error",
    "PaymentError",
    "InvalidPaymentError",
    "PaymentAmountExceededError",
    "PaymentDeclinedError",
    "ConfigurationError",
    "UnsupportedNetworkError",
    "InvalidPriceError",
    "FacilitatorError",
]
