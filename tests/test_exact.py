"""Tests for EIP-3009 payment signing."""

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from cronos402.common import build_payment_requirements
from cronos402.encoding import decode_payment_header
from cronos402.exact import (
    AUTHORIZATION_VALIDITY_SECONDS,
    TRANSFER_WITH_AUTHORIZATION_TYPES,
    EvmPaymentSigner,
    create_signer,
    prepare_payment_header,
    resolve_domain,
)
from cronos402.exceptions import ConfigurationError, UnsupportedNetworkError
from cronos402.networks import CRONOS_MAINNET, CRONOS_TESTNET, USDC_EIP712_NAME
from cronos402.types import PaymentRequirements

from conftest import RECIPIENT, TESTNET_USDC


@pytest.fixture
def account():
    return Account.create()


@pytest.fixture
def requirements():
    return build_payment_requirements(
        "weather", None, "0.01", {CRONOS_TESTNET: RECIPIENT}
    )[0]


def test_prepare_payment_header(account, requirements):
    header = prepare_payment_header(account.address, 1, requirements, now=1000)
    auth = header["payload"]

    assert header["x402Version"] == 1
    assert header["scheme"] == "exact"
    assert header["network"] == CRONOS_TESTNET
    assert auth["from"] == account.address
    assert auth["to"] == RECIPIENT
    assert auth["value"] == "10000"
    assert auth["validAfter"] == 0
    assert auth["validBefore"] == 1000 + AUTHORIZATION_VALIDITY_SECONDS
    assert auth["nonce"].startswith("0x")
    assert len(auth["nonce"]) == 66


def test_nonces_are_unique(account, requirements):
    first = prepare_payment_header(account.address, 1, requirements)
    second = prepare_payment_header(account.address, 1, requirements)
    assert first["payload"]["nonce"] != second["payload"]["nonce"]


def test_prepare_rejects_foreign_network(account):
    foreign = PaymentRequirements(
        network="base-sepolia",
        max_amount_required="10000",
        pay_to=RECIPIENT,
        asset=TESTNET_USDC,
    )
    with pytest.raises(UnsupportedNetworkError):
        prepare_payment_header(account.address, 1, foreign)


def test_resolve_domain_falls_back_to_asset_table():
    requirements = PaymentRequirements(
        network=CRONOS_TESTNET,
        max_amount_required="10000",
        pay_to=RECIPIENT,
        asset=TESTNET_USDC,
    )
    domain = resolve_domain(requirements)
    assert domain.name == USDC_EIP712_NAME
    assert domain.version == "1"
    assert domain.chain_id == 338


def test_resolve_domain_requires_gasless_asset():
    requirements = build_payment_requirements(
        "t", None, "0.01", {CRONOS_TESTNET: RECIPIENT}, token="CRO"
    )[0]
    with pytest.raises(ConfigurationError):
        resolve_domain(requirements)


def test_resolve_domain_rejects_unknown_asset():
    requirements = PaymentRequirements(
        network=CRONOS_TESTNET,
        max_amount_required="10000",
        pay_to=RECIPIENT,
        asset="0x" + "33" * 20,
    )
    with pytest.raises(ConfigurationError):
        resolve_domain(requirements)


def test_signer_refuses_native_cro(account):
    native = build_payment_requirements(
        "t", None, "0.01", {CRONOS_TESTNET: RECIPIENT}, token="CRO"
    )[0]
    with pytest.raises(ConfigurationError):
        EvmPaymentSigner(account).create_payment_header(native)


def test_signature_recovers_to_signer(account, requirements):
    signer = EvmPaymentSigner(account)
    header = decode_payment_header(signer.create_payment_header(requirements))
    auth = header.payload
    domain = requirements.extra

    message = encode_typed_data(
        domain_data={
            "name": domain.name,
            "version": domain.version,
            "chainId": domain.chain_id,
            "verifyingContract": domain.verifying_contract,
        },
        message_types=TRANSFER_WITH_AUTHORIZATION_TYPES,
        message_data={
            "from": auth.from_,
            "to": auth.to,
            "value": int(auth.value),
            "validAfter": auth.valid_after,
            "validBefore": auth.valid_before,
            "nonce": bytes.fromhex(auth.nonce[2:]),
        },
    )

    assert auth.signature.startswith("0x")
    assert Account.recover_message(message, signature=auth.signature) == account.address
    assert header.network == CRONOS_TESTNET
    assert auth.asset == requirements.asset


def test_create_signer_networks(account):
    key = account.key.hex()
    testnet = create_signer(CRONOS_TESTNET, key)
    mainnet = create_signer("cronos", key)

    assert testnet.address == account.address
    assert list(testnet.networks) == [CRONOS_TESTNET]
    assert CRONOS_MAINNET in mainnet.networks
    assert "cronos" in mainnet.networks


def test_default_signer_networks_include_alias(account):
    signer = EvmPaymentSigner(account)
    assert list(signer.networks) == [CRONOS_TESTNET, CRONOS_MAINNET, "cronos"]


def test_create_signer_rejects_foreign_network(account):
    with pytest.raises(UnsupportedNetworkError):
        create_signer("base", account.key.hex())
