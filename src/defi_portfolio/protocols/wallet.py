"""Wallet adapter reporting idle native and known-token balances."""

import logging
from typing import TYPE_CHECKING, Any

from defi_portfolio.core.models import Position, PositionType, ProtocolCategory, ProtocolInfo, YieldRate
from defi_portfolio.data import ZERO_ADDRESS
from defi_portfolio.protocols.base import (
    ProtocolAdapter,
    checksum,
    get_token_balance,
    get_token_decimals,
    get_token_symbol,
    make_token_balance,
    reraise_if_transport_error,
)
from defi_portfolio.types import ChainId

if TYPE_CHECKING:
    from defi_portfolio.chains.registry import ChainRegistry

logger = logging.getLogger(__name__)


class WalletAdapter(ProtocolAdapter):
    """
    Adapter for plain wallet holdings on every registered EVM chain.

    Reports the native balance plus every token listed in the chain's
    ``contracts`` map. Wallet balances earn nothing and have no yield rates.

    Parameters
    ----------
    chain_registry : ChainRegistry
        Registry providing chain configs (native currency, known tokens)

    """

    protocol = ProtocolInfo(
        id="wallet",
        name="Wallet",
        category=ProtocolCategory.WALLET,
        website="",
    )

    def __init__(self, chain_registry: "ChainRegistry") -> None:
        self.chain_registry = chain_registry

    @property
    def supported_chains(self) -> tuple[ChainId, ...]:  # type: ignore[override]
        return tuple(self.chain_registry.get_evm_chain_ids())

    def get_positions(self, client: Any, address: str, chain_id: ChainId) -> list[Position]:
        config = self.chain_registry.get_chain(chain_id)
        if config is None or not config.is_evm:
            return []

        positions = []

        # Native balance failures are transport failures; let them propagate
        native = int(client.eth.get_balance(checksum(address)))
        if native > 0:
            currency = config.native_currency
            positions.append(
                self._position(chain_id, make_token_balance(ZERO_ADDRESS, currency.symbol, currency.decimals, native))
            )

        for key, token in sorted(config.contracts.items()):
            try:
                balance = get_token_balance(client, token, address)
            except Exception as e:
                reraise_if_transport_error(e)
                logger.debug("Wallet balance for %s skipped on chain %s: %s", key, chain_id, e)
                continue
            if balance == 0:
                continue

            decimals = get_token_decimals(client, token)
            symbol = get_token_symbol(client, token)
            positions.append(self._position(chain_id, make_token_balance(token, symbol, decimals, balance)))

        return positions

    def get_yield_rates(self, client: Any, chain_id: ChainId) -> list[YieldRate]:
        return []

    def _position(self, chain_id: ChainId, token: Any) -> Position:
        return Position(
            id=f"wallet-{chain_id}-{token.address.lower()}",
            protocol=self.protocol,
            chain_id=chain_id,
            position_type=PositionType.WALLET,
            tokens=[token],
        )
