"""Data models for positions, yield rates, and portfolio summaries."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from defi_portfolio.types import SOLANA_CHAIN_ID, ChainId  # noqa: F401


class PositionType(StrEnum):
    """Type of DeFi position."""

    SUPPLY = "supply"
    BORROW = "borrow"
    LIQUIDITY = "liquidity"
    STAKE = "stake"
    VAULT = "vault"
    COLLATERAL = "collateral"
    WALLET = "wallet"
    RESTAKE = "restake"
    SAVINGS = "savings"
    FARM = "farm"
    LOCKED = "locked"
    FIXED_YIELD = "fixed-yield"
    RWA = "rwa"
    TOKENIZED_STOCK = "tokenized-stock"


class ProtocolCategory(StrEnum):
    """Category of an integrated protocol."""

    LENDING = "lending"
    DEX = "dex"
    LIQUID_STAKING = "liquid-staking"
    RESTAKING = "restaking"
    YIELD_AGGREGATOR = "yield-aggregator"
    CDP = "cdp"
    FIXED_YIELD = "fixed-yield"
    RWA = "rwa"
    TOKENIZED_SECURITIES = "tokenized-securities"
    DERIVATIVES = "derivatives"
    WALLET = "wallet"


class ProtocolInfo(BaseModel):
    """
    Static identity of a protocol integration.

    Attributes
    ----------
    id : str
        Unique protocol identifier (e.g., 'aave-v3', 'lido')
    name : str
        Display name
    category : ProtocolCategory
        Protocol category
    website : str
        Protocol website
    earns_yield : bool
        Whether positions in this category typically yield passively

    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: ProtocolCategory
    website: str
    earns_yield: bool = False


class TokenBalance(BaseModel):
    """
    Token amount held inside a position.

    Attributes
    ----------
    address : str
        Token contract address
    symbol : str
        Token symbol (e.g., 'ETH', 'USDC')
    decimals : int
        Number of decimal places
    balance : int
        Raw integer balance
    balance_formatted : str
        Balance scaled by decimals, as a decimal string
    price_usd : Decimal
        Unit price in USD (zero until priced)
    value_usd : Decimal
        USD value of this amount (zero until priced)

    """

    address: str
    symbol: str
    decimals: int
    balance: int
    balance_formatted: str
    price_usd: Decimal = Decimal("0")
    value_usd: Decimal = Decimal("0")


class YieldInfo(BaseModel):
    """Yield earned by a position."""

    apy: Decimal
    apr: Decimal
    reward_tokens: list[TokenBalance] = Field(default_factory=list)


class Position(BaseModel):
    """
    Universal position model across all protocols.

    Attributes
    ----------
    id : str
        Position identifier, unique within a portfolio
    protocol : ProtocolInfo
        Protocol the position belongs to
    chain_id : ChainId
        Chain the position lives on
    position_type : PositionType
        Type of position
    tokens : list[TokenBalance]
        Token amounts making up the position
    value_usd : Decimal
        Aggregate USD value
    yield_info : YieldInfo | None
        APY/APR if the position earns yield
    health_factor : Decimal | None
        Health factor for lending positions
    metadata : dict[str, Any]
        Protocol-specific display data

    """

    id: str
    protocol: ProtocolInfo
    chain_id: ChainId
    position_type: PositionType
    tokens: list[TokenBalance]
    value_usd: Decimal = Decimal("0")
    yield_info: YieldInfo | None = None
    health_factor: Decimal | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class YieldRate(BaseModel):
    """
    Yield currently offered by a protocol for one asset.

    Attributes
    ----------
    protocol : str
        Protocol identifier
    chain_id : ChainId
        Chain the rate applies to
    asset : str
        Asset contract address
    asset_symbol : str
        Asset symbol
    position_type : PositionType
        Kind of position that earns this rate
    apy : Decimal
        Annual percentage yield, as a fraction (0.05 == 5%)
    apr : Decimal
        Annual percentage rate, as a fraction
    tvl : Decimal | None
        Total value locked, if known

    """

    protocol: str
    chain_id: ChainId
    asset: str
    asset_symbol: str
    position_type: PositionType
    apy: Decimal
    apr: Decimal
    tvl: Decimal | None = None


class ChainPortfolio(BaseModel):
    """Positions and subtotal for one chain."""

    chain_id: ChainId
    chain_name: str
    total_value_usd: Decimal = Decimal("0")
    positions: list[Position] = Field(default_factory=list)


class ProtocolPortfolio(BaseModel):
    """Positions and subtotal for one protocol."""

    protocol_id: str
    protocol_name: str
    total_value_usd: Decimal = Decimal("0")
    positions: list[Position] = Field(default_factory=list)


class TypePortfolio(BaseModel):
    """Positions and subtotal for one position type."""

    position_type: PositionType
    total_value_usd: Decimal = Decimal("0")
    positions: list[Position] = Field(default_factory=list)


class Portfolio(BaseModel):
    """
    Aggregated portfolio view across all positions.

    Attributes
    ----------
    address : str
        User wallet address
    total_value_usd : Decimal
        Total portfolio value in USD
    positions : list[Position]
        All detected positions
    chain_ids : list[ChainId]
        Chains that were queried
    by_chain : dict[ChainId, ChainPortfolio]
        Breakdown by chain (every queried chain is present)
    by_protocol : dict[str, ProtocolPortfolio]
        Breakdown by protocol id
    by_type : dict[PositionType, TypePortfolio]
        Breakdown by position type
    fetched_at : datetime
        When the positions were fetched

    """

    address: str
    total_value_usd: Decimal = Decimal("0")
    positions: list[Position] = Field(default_factory=list)
    chain_ids: list[ChainId] = Field(default_factory=list)
    by_chain: dict[ChainId, ChainPortfolio] = Field(default_factory=dict)
    by_protocol: dict[str, ProtocolPortfolio] = Field(default_factory=dict)
    by_type: dict[PositionType, TypePortfolio] = Field(default_factory=dict)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RiskLevel(StrEnum):
    """Coarse risk rating for a yield alternative."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class YieldAlternative(BaseModel):
    """A better-yielding place for an asset the user already holds."""

    protocol: str
    protocol_name: str
    chain_id: ChainId
    asset: str
    apy: Decimal
    apy_improvement: Decimal
    annual_gain_usd: Decimal
    risk: RiskLevel


class YieldOpportunity(BaseModel):
    """A yield-bearing position with better alternatives available."""

    current_position: Position
    better_alternatives: list[YieldAlternative]
    potential_gain_apy: Decimal
    potential_gain_usd: Decimal


class IdleAsset(BaseModel):
    """A held token that earns nothing but could."""

    token: str
    symbol: str
    balance: int
    value_usd: Decimal
    chain_id: ChainId
    best_yield_opportunities: list[YieldAlternative]


class YieldAnalysis(BaseModel):
    """Result of comparing a portfolio against current yield rates."""

    address: str
    total_current_yield: Decimal
    total_potential_yield: Decimal
    opportunities: list[YieldOpportunity] = Field(default_factory=list)
    idle_assets: list[IdleAsset] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
