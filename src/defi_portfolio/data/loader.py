"""Chain catalog and protocol address loader."""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from defi_portfolio.chains.config import ChainConfig
from defi_portfolio.data.addresses import PROTOCOL_ADDRESSES
from defi_portfolio.types import ChainId


@lru_cache(maxsize=1)
def load_chain_catalog() -> dict[str, Any]:
    """
    Load the built-in chain catalog from chains.yaml.

    Returns
    -------
    dict[str, Any]
        Catalog keyed by chain slug (e.g., 'ethereum', 'base')

    """
    path = Path(__file__).parent / "chains.yaml"
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)["chains"]


def _find_entry(chain_id: ChainId) -> dict[str, Any]:
    for entry in load_chain_catalog().values():
        if entry["chain_id"] == chain_id:
            return entry
    msg = f"Chain {chain_id} not found in catalog"
    raise KeyError(msg)


def get_rpc_urls(chain_id: ChainId, environ: Mapping[str, str] | None = None) -> list[str]:
    """
    Get the ordered RPC endpoints for a chain.

    ``<ENV_KEY>_RPC_URL`` replaces the primary endpoint when set; the built-in
    public endpoints remain as fallbacks.

    Parameters
    ----------
    chain_id : ChainId
        Chain id
    environ : Mapping[str, str] | None
        Environment to read overrides from (defaults to ``os.environ``)

    Returns
    -------
    list[str]
        RPC endpoint URLs, primary first

    Raises
    ------
    KeyError
        If chain is not found in the catalog

    """
    environ = os.environ if environ is None else environ
    entry = _find_entry(chain_id)
    urls = list(entry["rpc_endpoints"])

    override = environ.get(f"{entry['env_key']}_RPC_URL", "").strip()
    if override:
        urls[0] = override
        # Keep the list free of duplicates if the override matches a fallback
        urls = list(dict.fromkeys(urls))
    return urls


def get_chain_config(chain_id: ChainId, environ: Mapping[str, str] | None = None) -> ChainConfig:
    """
    Build the configuration for one chain.

    Parameters
    ----------
    chain_id : ChainId
        Chain id (e.g., 1, 8453, 'solana')
    environ : Mapping[str, str] | None
        Environment to read RPC overrides from

    Returns
    -------
    ChainConfig
        Chain configuration

    Raises
    ------
    KeyError
        If chain is not found in the catalog

    """
    entry = _find_entry(chain_id)
    return ChainConfig(
        id=entry["chain_id"],
        name=entry["name"],
        network=entry["network"],
        rpc_urls=tuple(get_rpc_urls(chain_id, environ)),
        native_currency=entry["native_currency"],
        block_explorer=entry["block_explorer"],
        multicall3_address=entry.get("multicall3_address"),
        contracts=entry.get("contracts", {}),
    )


def get_chain_configs(environ: Mapping[str, str] | None = None) -> list[ChainConfig]:
    """Build configurations for every chain in the catalog."""
    return [get_chain_config(chain_id, environ) for chain_id in get_all_supported_chains()]


def get_all_supported_chains() -> list[ChainId]:
    """
    Get list of all chain ids in the catalog.

    Returns
    -------
    list[ChainId]
        Chain ids in catalog order

    """
    return [entry["chain_id"] for entry in load_chain_catalog().values()]


def get_protocol_addresses(chain_id: ChainId, protocol: str) -> dict[str, str]:
    """
    Get all contract addresses for a protocol on a chain.

    Parameters
    ----------
    chain_id : ChainId
        Chain id
    protocol : str
        Protocol id (e.g., 'aave-v3', 'lido')

    Returns
    -------
    dict[str, str]
        Mapping of contract names to addresses, empty if the protocol is not
        deployed on the chain

    """
    return dict(PROTOCOL_ADDRESSES.get(protocol, {}).get(chain_id, {}))
