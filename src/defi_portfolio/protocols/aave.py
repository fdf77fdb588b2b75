"""Aave v3 lending protocol adapter (and the Spark fork that shares its contracts)."""

import logging
from decimal import Decimal
from typing import Any

from defi_portfolio.core.models import (
    Position,
    PositionType,
    ProtocolCategory,
    ProtocolInfo,
    YieldInfo,
    YieldRate,
)
from defi_portfolio.data import get_protocol_addresses
from defi_portfolio.protocols.abis import AAVE_V3_DATA_PROVIDER_ABI, AAVE_V3_POOL_ABI
from defi_portfolio.protocols.base import (
    WAD,
    ProtocolAdapter,
    apr_to_apy,
    call_contract,
    checksum,
    get_token_decimals,
    make_token_balance,
    ray_to_rate,
    reraise_if_transport_error,
)
from defi_portfolio.types import ChainId

logger = logging.getLogger(__name__)


class AaveV3Adapter(ProtocolAdapter):
    """
    Adapter for Aave v3 lending positions.

    Reads every reserve from the pool data provider and reports aToken
    balances as supply (or collateral, when enabled as collateral) and
    variable/stable debt as borrow positions, all carrying the account's
    health factor.

    """

    protocol = ProtocolInfo(
        id="aave-v3",
        name="Aave V3",
        category=ProtocolCategory.LENDING,
        website="https://aave.com",
        earns_yield=True,
    )
    supported_chains: tuple[ChainId, ...] = (1, 42161, 10, 8453)

    def get_addresses(self, chain_id: ChainId) -> dict[str, str] | None:
        addresses = get_protocol_addresses(chain_id, self.protocol.id)
        if chain_id not in self.supported_chains or "pool_data_provider" not in addresses:
            return None
        return addresses

    def has_positions(self, client: Any, address: str, chain_id: ChainId) -> bool:
        addresses = self.get_addresses(chain_id)
        if not addresses:
            return False
        try:
            account = self._get_account_data(client, addresses, address)
        except Exception as e:
            logger.debug("%s account lookup failed on chain %s: %s", self.protocol.id, chain_id, e)
            return False
        return account[0] > 0 or account[1] > 0

    def get_positions(self, client: Any, address: str, chain_id: ChainId) -> list[Position]:
        """
        Fetch Aave positions for a user.

        Parameters
        ----------
        client : Any
            Web3 client for the chain
        address : str
            User wallet address
        chain_id : ChainId
            Chain id

        Returns
        -------
        list[Position]
            Supply, collateral and borrow positions

        """
        addresses = self.get_addresses(chain_id)
        if not addresses:
            return []

        reserves = self._get_reserves(client, addresses, chain_id)
        if not reserves:
            return []

        health_factor = self._get_health_factor(client, addresses, address, chain_id)

        positions = []
        for symbol, token_address in reserves:
            try:
                reserve = call_contract(
                    client,
                    addresses["pool_data_provider"],
                    AAVE_V3_DATA_PROVIDER_ABI,
                    "getUserReserveData",
                    checksum(token_address),
                    checksum(address),
                )
            except Exception as e:
                reraise_if_transport_error(e)
                logger.debug("%s reserve %s skipped on chain %s: %s", self.protocol.id, symbol, chain_id, e)
                continue

            positions.extend(
                self._reserve_positions(client, chain_id, symbol, token_address, reserve, health_factor)
            )

        return positions

    def get_yield_rates(self, client: Any, chain_id: ChainId) -> list[YieldRate]:
        addresses = self.get_addresses(chain_id)
        if not addresses:
            return []

        rates = []
        for symbol, token_address in self._get_reserves(client, addresses, chain_id):
            try:
                reserve = call_contract(
                    client,
                    addresses["pool_data_provider"],
                    AAVE_V3_DATA_PROVIDER_ABI,
                    "getReserveData",
                    checksum(token_address),
                )
            except Exception as e:
                reraise_if_transport_error(e)
                logger.debug("%s rate for %s skipped on chain %s: %s", self.protocol.id, symbol, chain_id, e)
                continue

            apr = ray_to_rate(reserve[5])
            rates.append(
                YieldRate(
                    protocol=self.protocol.id,
                    chain_id=chain_id,
                    asset=token_address,
                    asset_symbol=symbol,
                    position_type=PositionType.SUPPLY,
                    apy=apr_to_apy(apr),
                    apr=apr,
                )
            )
        return rates

    def _get_account_data(self, client: Any, addresses: dict[str, str], address: str) -> tuple:
        return call_contract(client, addresses["pool"], AAVE_V3_POOL_ABI, "getUserAccountData", checksum(address))

    def _get_reserves(self, client: Any, addresses: dict[str, str], chain_id: ChainId) -> list[tuple[str, str]]:
        try:
            reserves = call_contract(
                client, addresses["pool_data_provider"], AAVE_V3_DATA_PROVIDER_ABI, "getAllReservesTokens"
            )
        except Exception as e:
            reraise_if_transport_error(e)
            logger.debug("%s reserve list unavailable on chain %s: %s", self.protocol.id, chain_id, e)
            return []
        return [(symbol, token_address) for symbol, token_address in reserves]

    def _get_health_factor(
        self,
        client: Any,
        addresses: dict[str, str],
        address: str,
        chain_id: ChainId,
    ) -> Decimal | None:
        """
        Read the account health factor.

        Returns
        -------
        Decimal | None
            Health factor, or None when the account has no debt or the
            lookup fails

        """
        try:
            account = self._get_account_data(client, addresses, address)
        except Exception as e:
            reraise_if_transport_error(e)
            logger.debug("%s health factor unavailable on chain %s: %s", self.protocol.id, chain_id, e)
            return None

        # No debt means an unbounded health factor
        if account[1] == 0:
            return None
        return Decimal(account[5]) / WAD

    def _reserve_positions(
        self,
        client: Any,
        chain_id: ChainId,
        symbol: str,
        token_address: str,
        reserve: tuple,
        health_factor: Decimal | None,
    ) -> list[Position]:
        a_token_balance, stable_debt, variable_debt = reserve[0], reserve[1], reserve[2]
        liquidity_rate, collateral_enabled = reserve[6], reserve[8]

        if not (a_token_balance or stable_debt or variable_debt):
            return []

        decimals = get_token_decimals(client, token_address)
        positions = []

        if a_token_balance > 0:
            apr = ray_to_rate(liquidity_rate)
            positions.append(
                Position(
                    id=f"{self.protocol.id}-supply-{chain_id}-{token_address}",
                    protocol=self.protocol,
                    chain_id=chain_id,
                    position_type=PositionType.COLLATERAL if collateral_enabled else PositionType.SUPPLY,
                    tokens=[make_token_balance(token_address, symbol, decimals, a_token_balance)],
                    yield_info=YieldInfo(apy=apr_to_apy(apr), apr=apr),
                    health_factor=health_factor,
                )
            )

        for kind, debt in (("variable", variable_debt), ("stable", stable_debt)):
            if debt > 0:
                positions.append(
                    Position(
                        id=f"{self.protocol.id}-borrow-{kind}-{chain_id}-{token_address}",
                        protocol=self.protocol,
                        chain_id=chain_id,
                        position_type=PositionType.BORROW,
                        tokens=[make_token_balance(token_address, symbol, decimals, debt)],
                        health_factor=health_factor,
                        metadata={"rate_mode": kind},
                    )
                )

        return positions


class SparkAdapter(AaveV3Adapter):
    """Spark lending, an Aave v3 fork deployed on Ethereum."""

    protocol = ProtocolInfo(
        id="spark",
        name="Spark",
        category=ProtocolCategory.LENDING,
        website="https://spark.fi",
        earns_yield=True,
    )
    supported_chains: tuple[ChainId, ...] = (1,)
