"""Yield analysis comparing held positions against current protocol rates."""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import TYPE_CHECKING

from defi_portfolio.chains.registry import ChainRegistry
from defi_portfolio.core.models import (
    IdleAsset,
    Portfolio,
    Position,
    PositionType,
    RiskLevel,
    YieldAlternative,
    YieldAnalysis,
    YieldOpportunity,
    YieldRate,
)
from defi_portfolio.core.registry import ProtocolRegistry
from defi_portfolio.types import ChainId

if TYPE_CHECKING:
    from defi_portfolio.protocols.base import ProtocolAdapter

logger = logging.getLogger(__name__)

STABLECOINS = frozenset({"USDC", "USDT", "DAI", "FRAX", "LUSD", "USDS", "USDE"})
ETH_EQUIVALENTS = frozenset({"ETH", "WETH", "STETH", "WSTETH", "RETH", "CBETH"})

LOW_RISK_PROTOCOLS = frozenset({"aave-v3", "compound-v3", "lido"})
MEDIUM_RISK_PROTOCOLS = frozenset({"uniswap-v3", "curve", "yearn-v3", "rocket-pool"})

MAX_IDLE_SUGGESTIONS = 3


def is_equivalent_asset(symbol: str, other: str) -> bool:
    """
    Check whether two assets are interchangeable for yield comparison.

    Symbols match case-insensitively, and any two stablecoins or any two ETH
    derivatives count as equivalent.

    """
    a, b = symbol.upper(), other.upper()
    if a == b:
        return True
    return (a in STABLECOINS and b in STABLECOINS) or (a in ETH_EQUIVALENTS and b in ETH_EQUIVALENTS)


def assess_risk(protocol_id: str) -> RiskLevel:
    protocol_id = protocol_id.lower()
    if protocol_id in LOW_RISK_PROTOCOLS:
        return RiskLevel.LOW
    if protocol_id in MEDIUM_RISK_PROTOCOLS:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


class YieldAnalyzer:
    """
    Finds better-yielding alternatives for held positions and idle assets.

    Parameters
    ----------
    chain_registry : ChainRegistry
        Source of chain clients and failover
    protocol_registry : ProtocolRegistry
        Source of adapters and their rates
    min_apy_improvement : Decimal | float | str
        Smallest APY gain worth suggesting (0.005 == 0.5 percentage points)
    min_value_usd : Decimal | float | str
        Positions below this value are ignored

    """

    def __init__(
        self,
        chain_registry: ChainRegistry,
        protocol_registry: ProtocolRegistry,
        min_apy_improvement: Decimal | float | str = "0.005",
        min_value_usd: Decimal | float | str = 10,
    ) -> None:
        self.chain_registry = chain_registry
        self.protocol_registry = protocol_registry
        self.min_apy_improvement = Decimal(str(min_apy_improvement))
        self.min_value_usd = Decimal(str(min_value_usd))

    def fetch_all_yield_rates(self, chain_ids: Iterable[ChainId] | None = None) -> list[YieldRate]:
        """
        Fetch current rates from every adapter on every chain.

        Failing (chain, adapter) pairs are logged and skipped.

        Parameters
        ----------
        chain_ids : Iterable[ChainId] | None
            Chains to query; all registered chains when None

        Returns
        -------
        list[YieldRate]
            Rates from every pair that succeeded

        """
        chain_ids = list(chain_ids) if chain_ids else self.chain_registry.get_supported_chain_ids()
        pairs = [
            (chain_id, adapter)
            for chain_id in chain_ids
            for adapter in self.protocol_registry.get_adapters_for_chain(chain_id)
        ]
        if not pairs:
            return []

        rates: list[YieldRate] = []
        with ThreadPoolExecutor(max_workers=min(len(pairs), 16)) as executor:
            futures = [
                (chain_id, adapter, executor.submit(self._fetch_rates, chain_id, adapter))
                for chain_id, adapter in pairs
            ]
            for chain_id, adapter, future in futures:
                try:
                    rates.extend(future.result())
                except Exception as e:
                    logger.warning("Failed to fetch %s yield rates on chain %s: %s", adapter.protocol.id, chain_id, e)

        return rates

    def _fetch_rates(self, chain_id: ChainId, adapter: "ProtocolAdapter") -> list[YieldRate]:
        return self.chain_registry.with_failover(chain_id, lambda client: adapter.get_yield_rates(client, chain_id))

    def analyze(self, portfolio: Portfolio, yield_rates: list[YieldRate] | None = None) -> YieldAnalysis:
        """
        Compare a portfolio's positions against available yield.

        Parameters
        ----------
        portfolio : Portfolio
            Valued portfolio
        yield_rates : list[YieldRate] | None
            Rates to compare against; fetched for the portfolio's chains if None

        Returns
        -------
        YieldAnalysis
            Opportunities sorted by USD gain, and idle assets with their top
            suggestions

        """
        if yield_rates is None:
            yield_rates = self.fetch_all_yield_rates(portfolio.chain_ids)

        positions = portfolio.positions
        opportunities = self._find_opportunities(positions, yield_rates)
        idle_assets = self._find_idle_assets(positions, yield_rates)

        current_yield = sum(
            (p.value_usd * p.yield_info.apy for p in positions if p.yield_info is not None),
            Decimal("0"),
        )
        potential_yield = current_yield + sum((o.potential_gain_usd for o in opportunities), Decimal("0"))

        return YieldAnalysis(
            address=portfolio.address,
            total_current_yield=current_yield,
            total_potential_yield=potential_yield,
            opportunities=opportunities,
            idle_assets=idle_assets,
        )

    def _find_opportunities(self, positions: list[Position], yield_rates: list[YieldRate]) -> list[YieldOpportunity]:
        opportunities = []
        for position in positions:
            if position.yield_info is None or position.value_usd < self.min_value_usd or not position.tokens:
                continue

            alternatives = self._find_alternatives(position, yield_rates)
            if alternatives:
                best = alternatives[0]
                opportunities.append(
                    YieldOpportunity(
                        current_position=position,
                        better_alternatives=alternatives,
                        potential_gain_apy=best.apy_improvement,
                        potential_gain_usd=best.annual_gain_usd,
                    )
                )

        return sorted(opportunities, key=lambda o: o.potential_gain_usd, reverse=True)

    def _find_alternatives(self, position: Position, yield_rates: list[YieldRate]) -> list[YieldAlternative]:
        current_apy = position.yield_info.apy if position.yield_info else Decimal("0")
        symbol = position.tokens[0].symbol

        alternatives = []
        for rate in yield_rates:
            # Skip the position's own market
            if rate.protocol == position.protocol.id and rate.chain_id == position.chain_id:
                continue
            if not is_equivalent_asset(symbol, rate.asset_symbol):
                continue

            improvement = rate.apy - current_apy
            if improvement > self.min_apy_improvement:
                alternatives.append(self._alternative(rate, position.value_usd, improvement))

        return sorted(alternatives, key=lambda a: a.apy, reverse=True)

    def _find_idle_assets(self, positions: list[Position], yield_rates: list[YieldRate]) -> list[IdleAsset]:
        idle_assets = []
        for position in positions:
            if (
                position.yield_info is not None
                or position.position_type == PositionType.BORROW
                or position.value_usd < self.min_value_usd
                or not position.tokens
            ):
                continue

            token = position.tokens[0]
            suggestions = sorted(
                (
                    self._alternative(rate, position.value_usd, rate.apy)
                    for rate in yield_rates
                    if is_equivalent_asset(token.symbol, rate.asset_symbol)
                ),
                key=lambda a: a.apy,
                reverse=True,
            )[:MAX_IDLE_SUGGESTIONS]

            if suggestions:
                idle_assets.append(
                    IdleAsset(
                        token=token.address,
                        symbol=token.symbol,
                        balance=token.balance,
                        value_usd=position.value_usd,
                        chain_id=position.chain_id,
                        best_yield_opportunities=suggestions,
                    )
                )

        return idle_assets

    def _alternative(self, rate: YieldRate, value_usd: Decimal, improvement: Decimal) -> YieldAlternative:
        adapter = self.protocol_registry.get_adapter(rate.protocol)
        return YieldAlternative(
            protocol=rate.protocol,
            protocol_name=adapter.protocol.name if adapter else rate.protocol,
            chain_id=rate.chain_id,
            asset=rate.asset,
            apy=rate.apy,
            apy_improvement=improvement,
            annual_gain_usd=value_usd * improvement,
            risk=assess_risk(rate.protocol),
        )
