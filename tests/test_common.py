"""Tests for pricing, recipients and requirement building."""

from decimal import Decimal

import pytest
from eth_utils import to_checksum_address

from cronos402.common import (
    build_payment_annotations,
    build_payment_requirements,
    find_matching_payment_requirements,
    format_price_usd,
    normalize_recipients,
    parse_price_usd,
    price_to_atomic_amount,
)
from cronos402.exceptions import InvalidPriceError
from cronos402.networks import CRONOS_MAINNET, CRONOS_TESTNET, KNOWN_ASSETS

from conftest import RECIPIENT, TESTNET_USDC, make_payment_header


class TestParsePrice:
    @pytest.mark.parametrize(
        "price,expected",
        [
            ("0.01", Decimal("0.01")),
            ("$0.01", Decimal("0.01")),
            ("0.5 USD", Decimal("0.5")),
            (0.01, Decimal("0.01")),
            (2, Decimal("2")),
            (Decimal("1.25"), Decimal("1.25")),
            ({"amount": "0.02"}, Decimal("0.02")),
        ],
    )
    def test_valid_prices(self, price, expected):
        assert parse_price_usd(price) == expected

    @pytest.mark.parametrize("price", ["abc", "", "0", -1, True, {"currency": "USD"}])
    def test_invalid_prices(self, price):
        with pytest.raises(InvalidPriceError):
            parse_price_usd(price)

    def test_format_price_strips_dollar(self):
        assert format_price_usd("$0.01") == "0.01"
        assert format_price_usd({"amount": "0.02"}) == "0.02"


class TestAtomicAmount:
    def test_scenario_a_six_decimal_asset(self):
        amount, asset = price_to_atomic_amount("0.01", CRONOS_TESTNET)
        assert amount == 10000
        assert asset["decimals"] == 6

    def test_rounds_down(self):
        amount, _ = price_to_atomic_amount("0.0000019", CRONOS_TESTNET)
        assert amount == 1

    def test_below_smallest_unit(self):
        with pytest.raises(InvalidPriceError):
            price_to_atomic_amount("0.0000001", CRONOS_TESTNET)

    def test_cro_has_eighteen_decimals(self):
        amount, asset = price_to_atomic_amount("1", CRONOS_MAINNET, token="CRO")
        assert amount == 10**18
        assert asset["symbol"] == "CRO"


class TestNormalizeRecipients:
    def test_evm_shorthand_expands_to_all_networks(self):
        assert normalize_recipients({"evm": {"address": RECIPIENT}}) == {
            CRONOS_TESTNET: RECIPIENT,
            CRONOS_MAINNET: RECIPIENT,
        }

    def test_testnet_flag(self):
        assert normalize_recipients(
            {"evm": {"address": RECIPIENT, "is_testnet": True}}
        ) == {CRONOS_TESTNET: RECIPIENT}
        assert normalize_recipients(
            {"evm": {"address": RECIPIENT, "isTestnet": False}}
        ) == {CRONOS_MAINNET: RECIPIENT}

    def test_explicit_entries_override(self):
        other = "0x3333333333333333333333333333333333333333"
        recipients = normalize_recipients(
            {"evm": {"address": RECIPIENT}, CRONOS_MAINNET: other, "base": other}
        )
        assert recipients == {CRONOS_TESTNET: RECIPIENT, CRONOS_MAINNET: other}

    def test_custom_network_list(self):
        assert normalize_recipients(
            {"evm": {"address": RECIPIENT, "is_testnet": False}},
            networks=("cronos", "cronos-testnet"),
        ) == {"cronos": RECIPIENT}

    def test_empty(self):
        assert normalize_recipients(None) == {}
        assert normalize_recipients({}) == {}


class TestBuildPaymentRequirements:
    def test_builds_one_requirement_per_network(self):
        accepts = build_payment_requirements(
            "weather",
            None,
            "$0.01",
            {CRONOS_TESTNET: RECIPIENT, CRONOS_MAINNET: RECIPIENT},
        )

        assert [r.network for r in accepts] == [CRONOS_TESTNET, CRONOS_MAINNET]
        first = accepts[0]
        assert first.scheme == "exact"
        assert first.max_amount_required == "10000"
        assert first.pay_to == RECIPIENT
        assert first.asset == to_checksum_address(TESTNET_USDC)
        assert first.resource == "mcp://weather"
        assert first.description == "Paid access to weather"
        assert first.mime_type == "application/json"
        assert first.max_timeout_seconds == 300
        assert first.extra.chain_id == 338
        assert accepts[1].extra.chain_id == 25
        assert accepts[1].asset == to_checksum_address(
            KNOWN_ASSETS[CRONOS_MAINNET]["USDC.e"]["address"]
        )

    def test_deterministic(self):
        recipients = {CRONOS_TESTNET: RECIPIENT, CRONOS_MAINNET: RECIPIENT}
        first = build_payment_requirements("t", "d", "0.01", recipients)
        second = build_payment_requirements("t", "d", "0.01", recipients)
        assert first == second

    def test_invalid_price_yields_empty_list(self):
        assert build_payment_requirements("t", None, "free", {CRONOS_TESTNET: RECIPIENT}) == []

    def test_skips_unknown_networks(self):
        accepts = build_payment_requirements(
            "t", None, "0.01", {"base-sepolia": RECIPIENT, CRONOS_TESTNET: RECIPIENT}
        )
        assert [r.network for r in accepts] == [CRONOS_TESTNET]

    def test_cro_has_no_signing_domain(self):
        accepts = build_payment_requirements(
            "t", None, "0.01", {CRONOS_TESTNET: RECIPIENT}, token="CRO"
        )
        assert accepts[0].extra is None
        assert accepts[0].max_amount_required == str(10**16)


def test_build_payment_annotations():
    annotations = build_payment_annotations("$0.01", {CRONOS_TESTNET: RECIPIENT})

    assert annotations["paymentHint"] is True
    assert annotations["paymentPriceUSD"] == "0.01"
    assert annotations["paymentVersion"] == 1
    network = annotations["paymentNetworks"][0]
    assert network["network"] == CRONOS_TESTNET
    assert network["recipient"] == RECIPIENT
    assert network["maxAmountRequired"] == "10000"
    assert network["type"] == "evm"
    assert network["asset"]["decimals"] == 6


class TestFindMatchingRequirements:
    def test_matches_on_network_and_scheme(self):
        accepts = build_payment_requirements(
            "t", None, "0.01", {CRONOS_TESTNET: RECIPIENT, CRONOS_MAINNET: RECIPIENT}
        )
        match = find_matching_payment_requirements(
            accepts, make_payment_header(network=CRONOS_MAINNET)
        )
        assert match is accepts[1]

    def test_no_match(self):
        accepts = build_payment_requirements("t", None, "0.01", {CRONOS_TESTNET: RECIPIENT})
        assert (
            find_matching_payment_requirements(
                accepts, make_payment_header(network=CRONOS_MAINNET)
            )
            is None
        )
