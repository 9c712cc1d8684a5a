from typing import Optional

from typing_extensions import (
    TypedDict,
)  # use `typing_extensions.TypedDict` instead of `typing.TypedDict` on Python < 3.12


CRONOS_TESTNET = "cronos-testnet"
CRONOS_MAINNET = "cronos-mainnet"
CRONOS = "cronos"  # alias for mainnet

SUPPORTED_CRONOS_NETWORKS = [CRONOS_TESTNET, CRONOS_MAINNET]

NETWORK_TO_CHAIN_ID = {
    CRONOS_MAINNET: 25,
    CRONOS_TESTNET: 338,
}

NETWORK_TO_RPC_URL = {
    CRONOS_MAINNET: "https://evm.cronos.org",
    CRONOS_TESTNET: "https://evm-t3.cronos.org",
}

NETWORK_TO_EXPLORER_URL = {
    CRONOS_MAINNET: "https://explorer.cronos.org",
    CRONOS_TESTNET: "https://explorer.cronos.org/testnet",
}

DEFAULT_FACILITATOR_URL = "https://facilitator.cronoslabs.org/v2/x402"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

USDC_EIP712_NAME = "Bridged USDC (Stargate)"
USDC_EIP712_VERSION = "1"


class KnownAsset(TypedDict):
    address: str
    symbol: str
    decimals: int
    # EIP-712 domain name/version, only present for EIP-3009 tokens
    eip712_name: Optional[str]
    eip712_version: Optional[str]


KNOWN_ASSETS: dict[str, dict[str, KnownAsset]] = {
    CRONOS_MAINNET: {
        "USDC.e": {
            "address": "0xf951eC28187D9E5Ca673Da8FE6757E6f0Be5F77C",
            "symbol": "USDC.e",
            "decimals": 6,
            "eip712_name": USDC_EIP712_NAME,
            "eip712_version": USDC_EIP712_VERSION,
        },
        "CRO": {
            "address": ZERO_ADDRESS,
            "symbol": "CRO",
            "decimals": 18,
            "eip712_name": None,
            "eip712_version": None,
        },
    },
    CRONOS_TESTNET: {
        "USDC.e": {
            "address": "0xc01efAaF7C5C61bEbFAeb358E1161b537b8bC0e0",
            "symbol": "devUSDC.e",
            "decimals": 6,
            "eip712_name": USDC_EIP712_NAME,
            "eip712_version": USDC_EIP712_VERSION,
        },
        "CRO": {
            "address": ZERO_ADDRESS,
            "symbol": "TCRO",
            "decimals": 18,
            "eip712_name": None,
            "eip712_version": None,
        },
    },
}


def is_cronos_network(network: str) -> bool:
    """Check whether a network identifier names a Cronos network (alias included)."""
    return network in (CRONOS_TESTNET, CRONOS_MAINNET, CRONOS)


def normalize_network(network: str) -> str:
    """Resolve the ``cronos`` alias to ``cronos-mainnet``.

    Raises:
        ValueError: If the network is not a Cronos network
    """
    if network == CRONOS:
        return CRONOS_MAINNET
    if network not in NETWORK_TO_CHAIN_ID:
        raise ValueError(f"Unsupported network: {network}")
    return network


def is_testnet(network: str) -> bool:
    return normalize_network(network) == CRONOS_TESTNET


def get_chain_id(network: str) -> int:
    """Get the chain ID for a given network"""
    return NETWORK_TO_CHAIN_ID[normalize_network(network)]


def get_rpc_url(network: str) -> str:
    return NETWORK_TO_RPC_URL[normalize_network(network)]


def get_explorer_url(network: str) -> str:
    return NETWORK_TO_EXPLORER_URL[normalize_network(network)]


def get_asset(network: str, token: str = "USDC.e") -> KnownAsset:
    """Look up a known asset on a Cronos network.

    Args:
        network: Network identifier, ``cronos`` alias accepted
        token: Asset key, ``USDC.e`` or ``CRO``

    Returns:
        The asset entry

    Raises:
        ValueError: If the network or the asset is unknown
    """
    assets = KNOWN_ASSETS[normalize_network(network)]
    if token not in assets:
        raise ValueError(f"Unknown asset {token} on {network}")
    return assets[token]


def find_asset_by_address(network: str, address: str) -> Optional[KnownAsset]:
    """Find a known asset by contract address (case-insensitive)."""
    try:
        assets = KNOWN_ASSETS[normalize_network(network)]
    except ValueError:
        return None
    for asset in assets.values():
        if asset["address"].lower() == address.lower():
            return asset
    return None
