"""Data loading and configuration management."""

from defi_portfolio.data.addresses import (
    LIDO_ESTIMATED_APR,
    PROTOCOL_ADDRESSES,
    ROCKET_POOL_ESTIMATED_APR,
    SOLANA_NATIVE_MINT,
    SPL_TOKEN_PROGRAM_ID,
    ZERO_ADDRESS,
)
from defi_portfolio.data.loader import (
    get_all_supported_chains,
    get_chain_config,
    get_chain_configs,
    get_protocol_addresses,
    get_rpc_urls,
    load_chain_catalog,
)

__all__ = [
    # Centralized address constants
    "LIDO_ESTIMATED_APR",
    "PROTOCOL_ADDRESSES",
    "ROCKET_POOL_ESTIMATED_APR",
    "SOLANA_NATIVE_MINT",
    "SPL_TOKEN_PROGRAM_ID",
    "ZERO_ADDRESS",
    "get_all_supported_chains",
    "get_chain_config",
    "get_chain_configs",
    "get_protocol_addresses",
    "get_rpc_urls",
    # Loader functions
    "load_chain_catalog",
]
