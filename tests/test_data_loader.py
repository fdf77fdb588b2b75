"""Tests for data loading and configuration."""

import pytest

from defi_portfolio.chains import NetworkType
from defi_portfolio.data import (
    get_all_supported_chains,
    get_chain_config,
    get_chain_configs,
    get_protocol_addresses,
    get_rpc_urls,
)


def test_get_all_supported_chains():
    """Test the built-in catalog covers the EVM chains and Solana."""
    chains = get_all_supported_chains()

    assert chains == [1, 42161, 10, 8453, "solana"]


def test_get_chain_config():
    """Test building a chain configuration from the catalog."""
    config = get_chain_config(1)

    assert config.name == "Ethereum"
    assert config.network == NetworkType.EVM
    assert config.native_currency.symbol == "ETH"
    assert config.contracts["usdc"] == "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
    assert len(config.rpc_urls) >= 2


def test_solana_config():
    """Test Solana is catalogued with a string id."""
    config = get_chain_config("solana", environ={})

    assert config.network == NetworkType.SOLANA
    assert config.native_currency.symbol == "SOL"
    assert config.multicall3_address is None


def test_get_chain_config_unknown_chain():
    """Test unknown chains raise KeyError."""
    with pytest.raises(KeyError):
        get_chain_config(999)


def test_get_rpc_urls():
    """Test every endpoint is an https URL."""
    endpoints = get_rpc_urls(8453, environ={})

    assert endpoints
    assert all(endpoint.startswith("https://") for endpoint in endpoints)


def test_env_override_replaces_primary():
    """Test <ENV_KEY>_RPC_URL replaces the first endpoint and keeps fallbacks."""
    default = get_rpc_urls(1, environ={})

    overridden = get_rpc_urls(1, environ={"ETHEREUM_RPC_URL": "https://private.example"})

    assert overridden[0] == "https://private.example"
    assert overridden[1:] == default[1:]


def test_env_override_deduplicates():
    """Test an override equal to a fallback is not listed twice."""
    default = get_rpc_urls(42161, environ={})

    overridden = get_rpc_urls(42161, environ={"ARBITRUM_RPC_URL": default[1]})

    assert overridden == default[1:]


def test_blank_env_override_is_ignored():
    """Test whitespace-only overrides leave the catalog untouched."""
    assert get_rpc_urls(10, environ={"OPTIMISM_RPC_URL": "  "}) == get_rpc_urls(10, environ={})


def test_get_chain_configs():
    """Test configs are built for the whole catalog."""
    configs = get_chain_configs(environ={})

    assert [config.id for config in configs] == get_all_supported_chains()


def test_get_protocol_addresses():
    """Test protocol address lookup."""
    aave = get_protocol_addresses(1, "aave-v3")
    assert aave["pool"].startswith("0x")
    assert aave["pool_data_provider"].startswith("0x")

    lido_base = get_protocol_addresses(8453, "lido")
    assert "wsteth" in lido_base
    assert "steth" not in lido_base


def test_get_protocol_addresses_missing():
    """Test missing protocol or chain yields an empty mapping."""
    assert get_protocol_addresses(8453, "maker") == {}
    assert get_protocol_addresses(1, "nonexistent") == {}


def test_get_protocol_addresses_returns_copy():
    """Test callers cannot mutate the address table."""
    addresses = get_protocol_addresses(1, "lido")
    addresses["steth"] = "0x0"

    assert get_protocol_addresses(1, "lido")["steth"] != "0x0"
