"""Price oracle interface."""

from decimal import Decimal
from typing import Protocol

from defi_portfolio.types import ChainId


class PriceOracle(Protocol):
    """Source of USD unit prices keyed by (chain id, token address)."""

    def get_prices(self, tokens: list[tuple[ChainId, str]]) -> dict[tuple[ChainId, str], Decimal]:
        """Return a price for every requested token; unknown tokens map to zero."""
        ...
