"""Shared test fixtures and mock classes."""

from unittest.mock import AsyncMock

import pytest

from cronos402.config import X402Config
from cronos402.encoding import encode_payment_header
from cronos402.networks import CRONOS_TESTNET, KNOWN_ASSETS
from cronos402.types import (
    ExactEvmPayload,
    PaymentHeader,
    SettleResponse,
    VerifyResponse,
)

# ============================================================================
# Shared constants
# ============================================================================

RECIPIENT = "0x1111111111111111111111111111111111111111"
PAYER = "0x2222222222222222222222222222222222222222"
TESTNET_USDC = KNOWN_ASSETS[CRONOS_TESTNET]["USDC.e"]["address"]
TX_HASH = "0xtx123"


def make_payment_header(network=CRONOS_TESTNET, value="10000"):
    return PaymentHeader(
        x402_version=1,
        scheme="exact",
        network=network,
        payload=ExactEvmPayload(
            from_=PAYER,
            to=RECIPIENT,
            value=value,
            valid_after=0,
            valid_before=4102444800,
            nonce="0x" + "ab" * 32,
            signature="0x" + "cd" * 65,
            asset=TESTNET_USDC,
        ),
    )


def make_token(network=CRONOS_TESTNET, value="10000"):
    return encode_payment_header(make_payment_header(network, value))


# ============================================================================
# Mock classes
# ============================================================================


class MockMCPResult:
    """Configurable mock MCP SDK result."""

    def __init__(
        self, content=None, is_error=False, meta=None, structured_content=None
    ):
        self.content = content or [{"type": "text", "text": "pong"}]
        self.isError = is_error
        self.meta = meta or {}
        self.structuredContent = structured_content


class MockFacilitator:
    """Facilitator gateway with canned verify/settle answers."""

    def __init__(self, verify=None, settle=None):
        self.verify = AsyncMock(
            return_value=verify or VerifyResponse(is_valid=True, payer=PAYER)
        )
        self.settle = AsyncMock(
            return_value=settle
            or SettleResponse(
                success=True,
                transaction=TX_HASH,
                network=CRONOS_TESTNET,
                payer=PAYER,
            )
        )
        self.supported = AsyncMock()


class MockSigner:
    """PaymentSigner returning a fixed token."""

    def __init__(self, networks=(CRONOS_TESTNET,), token="signed-token"):
        self.address = PAYER
        self.networks = list(networks)
        self.token = token
        self.calls = []

    def create_payment_header(self, requirements, x402_version=1):
        self.calls.append((requirements, x402_version))
        return self.token


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def facilitator():
    return MockFacilitator()


@pytest.fixture
def config():
    return X402Config(
        recipient={"evm": {"address": RECIPIENT, "is_testnet": True}},
        prices={"paid": "$0.01"},
    )
