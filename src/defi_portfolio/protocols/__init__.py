"""Protocol adapters for the supported DeFi protocols."""

from typing import TYPE_CHECKING

from defi_portfolio.core.registry import ProtocolRegistry
from defi_portfolio.protocols.aave import AaveV3Adapter, SparkAdapter
from defi_portfolio.protocols.base import ProtocolAdapter
from defi_portfolio.protocols.lido import LidoAdapter
from defi_portfolio.protocols.maker import MakerAdapter
from defi_portfolio.protocols.rocket_pool import RocketPoolAdapter
from defi_portfolio.protocols.solana_wallet import SolanaWalletAdapter
from defi_portfolio.protocols.wallet import WalletAdapter

if TYPE_CHECKING:
    from defi_portfolio.chains.registry import ChainRegistry


def build_default_protocol_registry(chain_registry: "ChainRegistry") -> ProtocolRegistry:
    """
    Build a registry holding every built-in adapter.

    Parameters
    ----------
    chain_registry : ChainRegistry
        Chain registry the wallet adapters read chain configs from

    Returns
    -------
    ProtocolRegistry
        Registry with all built-in adapters registered

    """
    registry = ProtocolRegistry()
    for adapter in (
        AaveV3Adapter(),
        SparkAdapter(),
        LidoAdapter(),
        RocketPoolAdapter(),
        MakerAdapter(),
        WalletAdapter(chain_registry),
        SolanaWalletAdapter(chain_registry),
    ):
        registry.register_adapter(adapter)
    return registry


__all__ = [
    "AaveV3Adapter",
    "LidoAdapter",
    "MakerAdapter",
    "ProtocolAdapter",
    "RocketPoolAdapter",
    "SolanaWalletAdapter",
    "SparkAdapter",
    "WalletAdapter",
    "build_default_protocol_registry",
]
