"""Rocket Pool rETH liquid staking adapter."""

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
from defi_portfolio.data import ROCKET_POOL_ESTIMATED_APR, get_protocol_addresses
from defi_portfolio.protocols.abis import RETH_ABI
from defi_portfolio.protocols.base import (
    ProtocolAdapter,
    call_contract,
    checksum,
    format_units,
    make_token_balance,
    reraise_if_transport_error,
)
from defi_portfolio.types import ChainId

logger = logging.getLogger(__name__)


class RocketPoolAdapter(ProtocolAdapter):
    """Adapter for rETH holdings, valued in underlying ETH on mainnet."""

    protocol = ProtocolInfo(
        id="rocket-pool",
        name="Rocket Pool",
        category=ProtocolCategory.LIQUID_STAKING,
        website="https://rocketpool.net",
        earns_yield=True,
    )
    supported_chains: tuple[ChainId, ...] = (1, 42161, 10, 8453)

    def get_positions(self, client: Any, address: str, chain_id: ChainId) -> list[Position]:
        reth = self._reth_address(chain_id)
        if reth is None:
            return []

        try:
            balance = int(call_contract(client, reth, RETH_ABI, "balanceOf", checksum(address)))
        except Exception as e:
            reraise_if_transport_error(e)
            logger.debug("rETH balance lookup failed on chain %s: %s", chain_id, e)
            return []
        if balance == 0:
            return []

        metadata = {}
        # Bridged rETH on L2s has no exchange-rate function
        if chain_id == 1:
            try:
                eth_value = int(call_contract(client, reth, RETH_ABI, "getEthValue", balance))
                metadata["underlying_eth"] = format_units(eth_value, 18)
            except Exception as e:
                reraise_if_transport_error(e)
                logger.debug("rETH exchange rate unavailable: %s", e)

        apr = Decimal(ROCKET_POOL_ESTIMATED_APR)
        return [
            Position(
                id=f"rocket-pool-reth-{chain_id}",
                protocol=self.protocol,
                chain_id=chain_id,
                position_type=PositionType.STAKE,
                tokens=[make_token_balance(reth, "rETH", 18, balance)],
                yield_info=YieldInfo(apy=apr, apr=apr),
                metadata=metadata,
            )
        ]

    def get_yield_rates(self, client: Any, chain_id: ChainId) -> list[YieldRate]:
        reth = self._reth_address(chain_id)
        if reth is None:
            return []

        apr = Decimal(ROCKET_POOL_ESTIMATED_APR)
        return [
            YieldRate(
                protocol=self.protocol.id,
                chain_id=chain_id,
                asset=reth,
                asset_symbol="rETH",
                position_type=PositionType.STAKE,
                apy=apr,
                apr=apr,
            )
        ]

    def _reth_address(self, chain_id: ChainId) -> str | None:
        if chain_id not in self.supported_chains:
            return None
        return get_protocol_addresses(chain_id, self.protocol.id).get("reth")
