"""Chain configuration models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from defi_portfolio.types import ChainId


class NetworkType(StrEnum):
    """Kind of network a chain runs."""

    EVM = "evm"
    SOLANA = "solana"


class NativeCurrency(BaseModel):
    """Native gas currency of a chain."""

    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str
    decimals: int


class ChainConfig(BaseModel):
    """
    Immutable description of a supported chain.

    Attributes
    ----------
    id : ChainId
        Numeric chain id for EVM chains, ``"solana"`` for Solana
    name : str
        Display name
    network : NetworkType
        Network kind
    rpc_urls : tuple[str, ...]
        Ordered candidate RPC endpoints (primary first)
    native_currency : NativeCurrency
        Native currency descriptor
    block_explorer : str
        Block explorer base URL
    multicall3_address : str | None
        Multicall3 contract (EVM only)
    contracts : dict[str, str]
        Well-known token addresses keyed by lowercase symbol

    """

    model_config = ConfigDict(frozen=True)

    id: ChainId
    name: str
    network: NetworkType = NetworkType.EVM
    rpc_urls: tuple[str, ...]
    native_currency: NativeCurrency
    block_explorer: str
    multicall3_address: str | None = None
    contracts: dict[str, str] = Field(default_factory=dict)

    @field_validator("rpc_urls")
    @classmethod
    def _require_rpc_urls(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            msg = "rpc_urls must contain at least one endpoint"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _check_id_matches_network(self) -> "ChainConfig":
        if self.network == NetworkType.EVM and not isinstance(self.id, int):
            msg = f"EVM chain id must be numeric, got {self.id!r}"
            raise ValueError(msg)
        return self

    @property
    def is_evm(self) -> bool:
        return self.network == NetworkType.EVM
