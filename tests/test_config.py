"""Tests for configuration and environment loading."""

import pytest
from eth_account import Account

from cronos402.config import (
    DEFAULT_MAX_PAYMENT_VALUE,
    X402Config,
    client_config_from_env,
    facilitator_config_from_env,
)
from cronos402.exceptions import ConfigurationError
from cronos402.networks import (
    CRONOS_MAINNET,
    CRONOS_TESTNET,
    DEFAULT_FACILITATOR_URL,
    find_asset_by_address,
    get_asset,
    get_chain_id,
    get_explorer_url,
    get_rpc_url,
    is_cronos_network,
    is_testnet,
    normalize_network,
)

from conftest import RECIPIENT, TESTNET_USDC


class TestX402Config:
    def test_prices_are_read_only(self):
        prices = {"weather": "0.01"}
        config = X402Config(recipient={"evm": {"address": RECIPIENT}}, prices=prices)
        prices["weather"] = "99"

        assert config.price_for("weather") == "0.01"
        assert config.price_for("missing") is None
        with pytest.raises(TypeError):
            config.prices["weather"] = "0.02"

    def test_recipients(self):
        config = X402Config(recipient={CRONOS_MAINNET: RECIPIENT})
        assert config.recipients == {CRONOS_MAINNET: RECIPIENT}

    def test_requires_a_cronos_recipient(self):
        with pytest.raises(ConfigurationError):
            X402Config(recipient={"base": RECIPIENT})

    def test_rejects_unknown_token(self):
        with pytest.raises(ConfigurationError):
            X402Config(recipient={"evm": {"address": RECIPIENT}}, token="DAI")


class TestEnvironment:
    def test_client_config_from_env(self):
        account = Account.create()
        config = client_config_from_env(
            {"CRONOS_PRIVATE_KEY": account.key.hex(), "X402_MAX_ATOMIC": "2500"}
        )

        assert config.signer.address == account.address
        assert list(config.signer.networks) == [CRONOS_TESTNET]
        assert config.max_payment_value == 2500

    def test_client_config_defaults(self):
        config = client_config_from_env(
            {"CRONOS_PRIVATE_KEY": Account.create().key.hex(), "CRONOS_NETWORK": "cronos"}
        )
        assert config.max_payment_value == DEFAULT_MAX_PAYMENT_VALUE
        assert CRONOS_MAINNET in config.signer.networks

    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            client_config_from_env({})

    def test_bad_cap(self):
        with pytest.raises(ConfigurationError):
            client_config_from_env(
                {"CRONOS_PRIVATE_KEY": Account.create().key.hex(), "X402_MAX_ATOMIC": "lots"}
            )

    def test_bad_key(self):
        with pytest.raises(ConfigurationError):
            client_config_from_env({"CRONOS_PRIVATE_KEY": "0x1234"})

    def test_facilitator_config_from_env(self):
        assert facilitator_config_from_env({}).url == DEFAULT_FACILITATOR_URL
        assert (
            facilitator_config_from_env({"X402_FACILITATOR_URL": "http://localhost:8080"}).url
            == "http://localhost:8080"
        )


class TestNetworks:
    def test_alias(self):
        assert is_cronos_network("cronos")
        assert not is_cronos_network("base")
        assert normalize_network("cronos") == CRONOS_MAINNET
        with pytest.raises(ValueError):
            normalize_network("base")

    def test_chain_ids(self):
        assert get_chain_id(CRONOS_MAINNET) == 25
        assert get_chain_id("cronos") == 25
        assert get_chain_id(CRONOS_TESTNET) == 338
        assert is_testnet(CRONOS_TESTNET)
        assert not is_testnet("cronos")

    def test_urls(self):
        assert get_rpc_url(CRONOS_TESTNET).startswith("https://")
        assert "testnet" in get_explorer_url(CRONOS_TESTNET)

    def test_assets(self):
        assert get_asset(CRONOS_TESTNET)["decimals"] == 6
        assert get_asset(CRONOS_MAINNET, "CRO")["decimals"] == 18
        with pytest.raises(ValueError):
            get_asset(CRONOS_TESTNET, "DAI")
        assert find_asset_by_address(CRONOS_TESTNET, TESTNET_USDC.lower())["symbol"] == "devUSDC.e"
        assert find_asset_by_address("base", TESTNET_USDC) is None
