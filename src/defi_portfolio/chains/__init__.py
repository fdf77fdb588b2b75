"""Chain configuration and the resilient chain registry."""

from defi_portfolio.chains.config import ChainConfig, NativeCurrency, NetworkType
from defi_portfolio.chains.registry import (
    ChainRegistry,
    ChainRegistryError,
    EndpointHealth,
    RpcStatus,
    UnregisteredChainError,
)

__all__ = [
    "ChainConfig",
    "ChainRegistry",
    "ChainRegistryError",
    "EndpointHealth",
    "NativeCurrency",
    "NetworkType",
    "RpcStatus",
    "UnregisteredChainError",
]
