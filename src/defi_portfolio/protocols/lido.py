"""Lido liquid staking protocol adapter."""

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
from defi_portfolio.data import LIDO_ESTIMATED_APR, get_protocol_addresses
from defi_portfolio.protocols.abis import ERC20_ABI, WSTETH_ABI
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


class LidoAdapter(ProtocolAdapter):
    """
    Adapter for Lido liquid staking positions.

    Tracks stETH on Ethereum and wstETH on every supported chain. wstETH
    positions carry the underlying stETH amount in metadata.

    """

    protocol = ProtocolInfo(
        id="lido",
        name="Lido",
        category=ProtocolCategory.LIQUID_STAKING,
        website="https://lido.fi",
        earns_yield=True,
    )
    supported_chains: tuple[ChainId, ...] = (1, 42161, 10, 8453)

    def get_positions(self, client: Any, address: str, chain_id: ChainId) -> list[Position]:
        if chain_id not in self.supported_chains:
            return []
        addresses = get_protocol_addresses(chain_id, self.protocol.id)
        if not addresses:
            return []

        positions = []

        # stETH only exists on Ethereum mainnet
        steth = addresses.get("steth")
        if steth:
            balance = self._balance_of(client, steth, address, chain_id)
            if balance:
                positions.append(self._position(chain_id, "steth", steth, "stETH", balance))

        wsteth = addresses.get("wsteth")
        if wsteth:
            balance = self._balance_of(client, wsteth, address, chain_id)
            if balance:
                underlying = self._underlying_steth(client, wsteth, balance)
                positions.append(
                    self._position(
                        chain_id,
                        "wsteth",
                        wsteth,
                        "wstETH",
                        balance,
                        metadata={"underlying_steth": format_units(underlying, 18)},
                    )
                )

        return positions

    def get_yield_rates(self, client: Any, chain_id: ChainId) -> list[YieldRate]:
        addresses = get_protocol_addresses(chain_id, self.protocol.id)
        if chain_id not in self.supported_chains or "wsteth" not in addresses:
            return []

        # Same staking APR on every chain
        apr = Decimal(LIDO_ESTIMATED_APR)
        return [
            YieldRate(
                protocol=self.protocol.id,
                chain_id=chain_id,
                asset=addresses["wsteth"],
                asset_symbol="wstETH",
                position_type=PositionType.STAKE,
                apy=apr,
                apr=apr,
            )
        ]

    def _balance_of(self, client: Any, token: str, address: str, chain_id: ChainId) -> int:
        try:
            return int(call_contract(client, token, ERC20_ABI, "balanceOf", checksum(address)))
        except Exception as e:
            reraise_if_transport_error(e)
            logger.debug("Lido balance lookup for %s failed on chain %s: %s", token, chain_id, e)
            return 0

    def _underlying_steth(self, client: Any, wsteth: str, balance: int) -> int:
        try:
            return int(call_contract(client, wsteth, WSTETH_ABI, "getStETHByWstETH", balance))
        except Exception as e:
            reraise_if_transport_error(e)
            # Fall back to 1:1
            return balance

    def _position(
        self,
        chain_id: ChainId,
        key: str,
        token: str,
        symbol: str,
        balance: int,
        metadata: dict[str, Any] | None = None,
    ) -> Position:
        apr = Decimal(LIDO_ESTIMATED_APR)
        return Position(
            id=f"lido-{key}-{chain_id}",
            protocol=self.protocol,
            chain_id=chain_id,
            position_type=PositionType.STAKE,
            tokens=[make_token_balance(token, symbol, 18, balance)],
            yield_info=YieldInfo(apy=apr, apr=apr),
            metadata=metadata or {},
        )
