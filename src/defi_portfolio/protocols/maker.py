"""Sky (Maker) savings adapter for sDAI and sUSDS."""

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
from defi_portfolio.protocols.abis import ERC4626_ABI, POT_ABI
from defi_portfolio.protocols.base import (
    ProtocolAdapter,
    call_contract,
    checksum,
    format_units,
    make_token_balance,
    per_second_rate_to_apy,
    reraise_if_transport_error,
)
from defi_portfolio.types import ChainId

logger = logging.getLogger(__name__)

# (address key, symbol, metadata key for the underlying amount)
SAVINGS_VAULTS = (
    ("sdai", "sDAI", "underlying_dai"),
    ("susds", "sUSDS", "underlying_usds"),
)


class MakerAdapter(ProtocolAdapter):
    """
    Adapter for Sky savings vaults.

    Both vaults are ERC-4626 and earn the Dai Savings Rate, read from the
    Pot as a per-second ray and compounded to an APY.

    """

    protocol = ProtocolInfo(
        id="maker",
        name="Sky (Maker)",
        category=ProtocolCategory.CDP,
        website="https://sky.money",
        earns_yield=True,
    )
    supported_chains: tuple[ChainId, ...] = (1,)

    def get_positions(self, client: Any, address: str, chain_id: ChainId) -> list[Position]:
        if chain_id not in self.supported_chains:
            return []
        addresses = get_protocol_addresses(chain_id, self.protocol.id)
        if not addresses:
            return []

        positions = []
        dsr: Decimal | None = None

        for key, symbol, underlying_key in SAVINGS_VAULTS:
            vault = addresses.get(key)
            if not vault:
                continue

            try:
                shares = int(call_contract(client, vault, ERC4626_ABI, "balanceOf", checksum(address)))
                if shares == 0:
                    continue
                assets = int(call_contract(client, vault, ERC4626_ABI, "convertToAssets", shares))
            except Exception as e:
                reraise_if_transport_error(e)
                logger.debug("Maker %s lookup failed: %s", symbol, e)
                continue

            if dsr is None:
                dsr = self._get_dsr(client, addresses)

            positions.append(
                Position(
                    id=f"maker-{key}-{chain_id}",
                    protocol=self.protocol,
                    chain_id=chain_id,
                    position_type=PositionType.SAVINGS,
                    tokens=[make_token_balance(vault, symbol, 18, shares)],
                    yield_info=YieldInfo(apy=dsr, apr=dsr),
                    metadata={underlying_key: format_units(assets, 18)},
                )
            )

        return positions

    def get_yield_rates(self, client: Any, chain_id: ChainId) -> list[YieldRate]:
        if chain_id not in self.supported_chains:
            return []
        addresses = get_protocol_addresses(chain_id, self.protocol.id)
        if not addresses:
            return []

        # sUSDS tracks the same rate as the DSR
        dsr = self._get_dsr(client, addresses)
        return [
            YieldRate(
                protocol=self.protocol.id,
                chain_id=chain_id,
                asset=addresses[key],
                asset_symbol=symbol,
                position_type=PositionType.SAVINGS,
                apy=dsr,
                apr=dsr,
            )
            for key, symbol, _ in SAVINGS_VAULTS
            if key in addresses
        ]

    def _get_dsr(self, client: Any, addresses: dict[str, str]) -> Decimal:
        try:
            return per_second_rate_to_apy(int(call_contract(client, addresses["pot"], POT_ABI, "dsr")))
        except Exception as e:
            reraise_if_transport_error(e)
            logger.debug("DSR unavailable: %s", e)
            return Decimal("0")
