"""Portfolio aggregator fanning position lookups out across chains and protocols."""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import TYPE_CHECKING

from defi_portfolio.chains.registry import ChainRegistry
from defi_portfolio.core.models import (
    ChainPortfolio,
    Portfolio,
    Position,
    PositionType,
    ProtocolPortfolio,
    TypePortfolio,
)
from defi_portfolio.core.registry import ProtocolRegistry
from defi_portfolio.types import ChainId

if TYPE_CHECKING:
    from defi_portfolio.pricing.base import PriceOracle
    from defi_portfolio.protocols.base import ProtocolAdapter

logger = logging.getLogger(__name__)


def _position_sort_key(position: Position) -> tuple[str, str, str]:
    # chain ids mix int and str, so compare their string form
    return str(position.chain_id), position.protocol.id, position.id


class PortfolioAggregator:
    """
    Builds a portfolio for an address from every (chain, adapter) pair.

    Each pair runs as its own thread-pool task through the chain registry's
    failover, so one slow or failing pair never blocks or poisons the others.

    Parameters
    ----------
    chain_registry : ChainRegistry
        Source of chain clients and failover
    protocol_registry : ProtocolRegistry
        Source of protocol adapters
    price_oracle : PriceOracle | None
        Optional price source for the valuation pass
    max_workers : int
        Upper bound on concurrent (chain, adapter) tasks

    """

    def __init__(
        self,
        chain_registry: ChainRegistry,
        protocol_registry: ProtocolRegistry,
        price_oracle: "PriceOracle | None" = None,
        max_workers: int = 16,
    ) -> None:
        self.chain_registry = chain_registry
        self.protocol_registry = protocol_registry
        self.price_oracle = price_oracle
        self.max_workers = max_workers

    def get_portfolio(
        self,
        address: str,
        chain_ids: Iterable[ChainId] | None = None,
        *,
        enrich_prices: bool = True,
    ) -> Portfolio:
        """
        Get all positions for an address across chains and protocols.

        Parameters
        ----------
        address : str
            User wallet address
        chain_ids : Iterable[ChainId] | None
            Chains to query; all registered chains when None or empty
        enrich_prices : bool
            Run the valuation pass if a price oracle is configured

        Returns
        -------
        Portfolio
            Portfolio with chain, protocol and type breakdowns. Every queried
            chain appears in ``by_chain``, even without positions.

        """
        target_chains = list(dict.fromkeys(chain_ids or [])) or self.chain_registry.get_supported_chain_ids()

        positions = self.collect_positions(address, target_chains)
        portfolio = self.build_portfolio(address, positions, target_chains)

        if enrich_prices and self.price_oracle is not None:
            portfolio = self.enrich_with_prices(portfolio)

        return portfolio

    def collect_positions(self, address: str, chain_ids: Iterable[ChainId]) -> list[Position]:
        """
        Fetch positions from every adapter on every chain concurrently.

        Parameters
        ----------
        address : str
            User wallet address
        chain_ids : Iterable[ChainId]
            Chains to query

        Returns
        -------
        list[Position]
            Positions from all pairs that succeeded, in deterministic order

        """
        pairs = [
            (chain_id, adapter)
            for chain_id in chain_ids
            for adapter in self.protocol_registry.get_adapters_for_chain(chain_id)
        ]
        if not pairs:
            return []

        logger.debug("Fetching positions for %s from %d (chain, protocol) pairs", address, len(pairs))

        positions: list[Position] = []
        with ThreadPoolExecutor(max_workers=min(len(pairs), self.max_workers)) as executor:
            futures = [
                (chain_id, adapter, executor.submit(self._fetch_pair, address, chain_id, adapter))
                for chain_id, adapter in pairs
            ]

            for chain_id, adapter, future in futures:
                try:
                    positions.extend(future.result())
                except Exception as e:
                    # Continue with other pairs even if one fails
                    logger.warning(
                        "Failed to fetch %s positions on chain %s: %s",
                        adapter.protocol.id,
                        chain_id,
                        e,
                    )

        return sorted(positions, key=_position_sort_key)

    def _fetch_pair(self, address: str, chain_id: ChainId, adapter: "ProtocolAdapter") -> list[Position]:
        return self.chain_registry.with_failover(
            chain_id,
            lambda client: adapter.get_positions(client, address, chain_id),
        )

    def build_portfolio(
        self,
        address: str,
        positions: list[Position],
        chain_ids: Iterable[ChainId],
    ) -> Portfolio:
        """
        Fold positions into a portfolio with chain, protocol and type groupings.

        Parameters
        ----------
        address : str
            User wallet address
        positions : list[Position]
            Positions to aggregate
        chain_ids : Iterable[ChainId]
            Chains that were queried

        Returns
        -------
        Portfolio
            Aggregated portfolio

        """
        chain_ids = list(chain_ids)

        by_chain: dict[ChainId, ChainPortfolio] = {}
        for chain_id in chain_ids:
            config = self.chain_registry.get_chain(chain_id)
            by_chain[chain_id] = ChainPortfolio(
                chain_id=chain_id,
                chain_name=config.name if config else f"Chain {chain_id}",
            )

        by_protocol: dict[str, ProtocolPortfolio] = {}
        by_type: dict[PositionType, TypePortfolio] = {}
        total = Decimal("0")

        for position in positions:
            value = position.value_usd
            total += value

            chain_group = by_chain.get(position.chain_id)
            if chain_group is None:
                chain_group = by_chain[position.chain_id] = ChainPortfolio(
                    chain_id=position.chain_id,
                    chain_name=f"Chain {position.chain_id}",
                )
            chain_group.positions.append(position)
            chain_group.total_value_usd += value

            protocol_group = by_protocol.get(position.protocol.id)
            if protocol_group is None:
                protocol_group = by_protocol[position.protocol.id] = ProtocolPortfolio(
                    protocol_id=position.protocol.id,
                    protocol_name=position.protocol.name,
                )
            protocol_group.positions.append(position)
            protocol_group.total_value_usd += value

            type_group = by_type.get(position.position_type)
            if type_group is None:
                type_group = by_type[position.position_type] = TypePortfolio(position_type=position.position_type)
            type_group.positions.append(position)
            type_group.total_value_usd += value

        return Portfolio(
            address=address,
            total_value_usd=total,
            positions=positions,
            chain_ids=chain_ids,
            by_chain=by_chain,
            by_protocol=by_protocol,
            by_type=by_type,
        )

    def recompute(self, portfolio: Portfolio) -> Portfolio:
        """
        Re-fold a portfolio from its current positions.

        Run after position values change so every subtotal agrees with the
        positions again.

        """
        rebuilt = self.build_portfolio(portfolio.address, portfolio.positions, portfolio.chain_ids)
        return rebuilt.model_copy(update={"fetched_at": portfolio.fetched_at})

    @staticmethod
    def apply_prices(positions: list[Position], prices: dict[tuple[ChainId, str], Decimal]) -> None:
        """
        Value positions in place from unit prices.

        Each token gets ``price_usd`` and ``value_usd = balance_formatted * price``;
        each position's ``value_usd`` becomes the sum of its tokens.

        Parameters
        ----------
        positions : list[Position]
            Positions to value
        prices : dict[tuple[ChainId, str], Decimal]
            Unit prices keyed by (chain id, lowercase token address)

        """
        for position in positions:
            position_value = Decimal("0")
            for token in position.tokens:
                price = prices.get((position.chain_id, token.address.lower()), Decimal("0"))
                token.price_usd = price
                token.value_usd = Decimal(token.balance_formatted) * price
                position_value += token.value_usd
            position.value_usd = position_value

    def enrich_with_prices(self, portfolio: Portfolio) -> Portfolio:
        """
        Price every token in a portfolio and recompute all subtotals.

        Parameters
        ----------
        portfolio : Portfolio
            Portfolio from the fetch pass

        Returns
        -------
        Portfolio
            Valued portfolio

        """
        if self.price_oracle is None or not portfolio.positions:
            return portfolio

        # Solana mints are case-sensitive, so the oracle gets addresses as reported
        unique: dict[tuple[ChainId, str], tuple[ChainId, str]] = {}
        for position in portfolio.positions:
            for token in position.tokens:
                unique.setdefault((position.chain_id, token.address.lower()), (position.chain_id, token.address))
        tokens = list(unique.values())
        try:
            prices = self.price_oracle.get_prices(tokens)
        except Exception as e:
            logger.warning("Price lookup failed for %d tokens, valuing at zero: %s", len(tokens), e)
            prices = {}
        normalized = {(chain_id, address.lower()): price for (chain_id, address), price in prices.items()}

        self.apply_prices(portfolio.positions, normalized)
        return self.recompute(portfolio)
