import logging
import secrets
import time
from typing import Any, Optional, Protocol, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from cronos402.common import asset_domain, x402_VERSION
from cronos402.encoding import encode_payment_header
from cronos402.exceptions import ConfigurationError, UnsupportedNetworkError
from cronos402.networks import (
    CRONOS,
    CRONOS_MAINNET,
    CRONOS_TESTNET,
    find_asset_by_address,
    get_chain_id,
    is_cronos_network,
)
from cronos402.types import (
    EIP712Domain,
    ExactEvmPayload,
    PaymentHeader,
    PaymentRequirements,
)

logger = logging.getLogger(__name__)

# Authorizations are valid immediately and for one hour
AUTHORIZATION_VALIDITY_SECONDS = 3600

TRANSFER_WITH_AUTHORIZATION_TYPES = {
    "TransferWithAuthorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ]
}


class PaymentSigner(Protocol):
    """Signing capability used by the client to pay for tool calls."""

    @property
    def address(self) -> str: ...

    @property
    def networks(self) -> Sequence[str]:
        """Networks this signer can pay on."""
        ...

    def create_payment_header(
        self, requirements: PaymentRequirements, x402_version: int = x402_VERSION
    ) -> str:
        """Sign an authorization for ``requirements`` and return the base64 token."""
        ...


def create_nonce() -> str:
    """Create a random 32-byte hex-encoded nonce for authorization signatures."""
    return secrets.token_hex(32)


def resolve_domain(requirements: PaymentRequirements) -> EIP712Domain:
    """EIP-712 domain for a requirement, from ``extra`` or the asset table.

    Raises:
        ConfigurationError: If the asset has no gasless-transfer domain
    """
    chain_id = get_chain_id(requirements.network)
    verifying_contract = to_checksum_address(requirements.asset)
    if requirements.extra is not None:
        return EIP712Domain(
            name=requirements.extra.name,
            version=requirements.extra.version,
            chain_id=chain_id,
            verifying_contract=verifying_contract,
        )
    asset = find_asset_by_address(requirements.network, requirements.asset)
    domain = asset_domain(requirements.network, asset) if asset else None
    if domain is None:
        raise ConfigurationError(
            f"EIP-712 configuration not available for {requirements.asset} "
            f"on {requirements.network}"
        )
    return EIP712Domain(
        name=domain.name,
        version=domain.version,
        chain_id=chain_id,
        verifying_contract=verifying_contract,
    )


def prepare_payment_header(
    sender_address: str,
    x402_version: int,
    requirements: PaymentRequirements,
    now: Optional[int] = None,
) -> dict[str, Any]:
    """Prepare an unsigned payment header with the authorization ready for signing.

    Raises:
        UnsupportedNetworkError: If the requirement is not on a Cronos network
    """
    if not is_cronos_network(requirements.network):
        raise UnsupportedNetworkError(
            f"Unsupported network for Cronos payment: {requirements.network}"
        )
    now = int(time.time()) if now is None else now

    return {
        "x402Version": x402_version,
        "scheme": "exact",
        "network": requirements.network,
        "payload": {
            "from": to_checksum_address(sender_address),
            "to": to_checksum_address(requirements.pay_to),
            "value": requirements.max_amount_required,
            "validAfter": 0,
            "validBefore": now + AUTHORIZATION_VALIDITY_SECONDS,
            "nonce": f"0x{create_nonce()}",
            "signature": None,
            "asset": to_checksum_address(requirements.asset),
        },
    }


def sign_payment_header(
    account: LocalAccount, requirements: PaymentRequirements, header: dict[str, Any]
) -> str:
    """Sign a prepared header and return the base64 payment token.

    Args:
        account: eth_account local account holding the private key
        requirements: The payment requirements
        header: Pre-built unsigned header from prepare_payment_header

    Returns:
        Base64 encoded payment header string
    """
    auth = header["payload"]
    domain = resolve_domain(requirements)

    signed_message = account.sign_typed_data(
        domain_data={
            "name": domain.name,
            "version": domain.version,
            "chainId": domain.chain_id,
            "verifyingContract": domain.verifying_contract,
        },
        message_types=TRANSFER_WITH_AUTHORIZATION_TYPES,
        message_data={
            "from": auth["from"],
            "to": auth["to"],
            "value": int(auth["value"]),
            "validAfter": int(auth["validAfter"]),
            "validBefore": int(auth["validBefore"]),
            "nonce": bytes.fromhex(auth["nonce"][2:]),
        },
    )
    signature = signed_message.signature.hex()
    if not signature.startswith("0x"):
        signature = f"0x{signature}"
    auth["signature"] = signature

    return encode_payment_header(
        PaymentHeader(
            x402_version=header["x402Version"],
            scheme=header["scheme"],
            network=header["network"],
            payload=ExactEvmPayload.model_validate(auth),
        )
    )


class EvmPaymentSigner:
    """PaymentSigner backed by an eth_account local account."""

    def __init__(
        self, account: LocalAccount, networks: Optional[Sequence[str]] = None
    ):
        """Initialize the signer.

        Args:
            account: eth_account.Account instance for EVM signing
            networks: Networks this signer pays on, all Cronos networks and the
                ``cronos`` alias by default
        """
        self._account = account
        self._networks = list(networks or (CRONOS_TESTNET, CRONOS_MAINNET, CRONOS))

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def networks(self) -> Sequence[str]:
        return self._networks

    def create_payment_header(
        self, requirements: PaymentRequirements, x402_version: int = x402_VERSION
    ) -> str:
        header = prepare_payment_header(self.address, x402_version, requirements)
        logger.debug(
            f"Signing {requirements.max_amount_required} on {requirements.network} "
            f"to {requirements.pay_to}"
        )
        return sign_payment_header(self._account, requirements, header)


def create_signer(network: str, private_key: str) -> EvmPaymentSigner:
    """Create a signer for one Cronos network from a hex private key.

    The ``cronos`` alias pays on mainnet and is accepted alongside it.
    """
    if not is_cronos_network(network):
        raise UnsupportedNetworkError(f"Unsupported network: {network}")
    account = Account.from_key(private_key)
    if network == CRONOS_TESTNET:
        networks = [CRONOS_TESTNET]
    else:
        networks = [CRONOS, CRONOS_MAINNET]
    return EvmPaymentSigner(account, networks=networks)
