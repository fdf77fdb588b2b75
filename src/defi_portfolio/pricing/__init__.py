"""Pricing services for token USD value enrichment."""

from defi_portfolio.pricing.base import PriceOracle
from defi_portfolio.pricing.defillama import DeFiLlamaPricing

__all__ = [
    "DeFiLlamaPricing",
    "PriceOracle",
]
