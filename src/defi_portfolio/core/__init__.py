"""Core functionality including models, registry, aggregator, and yield analysis."""

from defi_portfolio.core.aggregator import PortfolioAggregator
from defi_portfolio.core.models import (
    Portfolio,
    Position,
    PositionType,
    ProtocolCategory,
    ProtocolInfo,
    TokenBalance,
    YieldAnalysis,
    YieldInfo,
    YieldRate,
)
from defi_portfolio.core.registry import ProtocolRegistry
from defi_portfolio.core.yield_analyzer import YieldAnalyzer

__all__ = [
    "Portfolio",
    "PortfolioAggregator",
    "Position",
    "PositionType",
    "ProtocolCategory",
    "ProtocolInfo",
    "ProtocolRegistry",
    "TokenBalance",
    "YieldAnalysis",
    "YieldAnalyzer",
    "YieldInfo",
    "YieldRate",
]
