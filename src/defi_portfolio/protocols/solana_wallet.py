"""Solana wallet adapter reporting SOL and known SPL token balances."""

import logging
from typing import TYPE_CHECKING, Any

from solana.rpc.types import TokenAccountOpts
from solders.pubkey import Pubkey

from defi_portfolio.core.models import (
    Position,
    PositionType,
    ProtocolCategory,
    ProtocolInfo,
    TokenBalance,
    YieldRate,
)
from defi_portfolio.data import SOLANA_NATIVE_MINT, SPL_TOKEN_PROGRAM_ID
from defi_portfolio.protocols.base import ProtocolAdapter, make_token_balance, reraise_if_transport_error
from defi_portfolio.types import SOLANA_CHAIN_ID, ChainId

if TYPE_CHECKING:
    from defi_portfolio.chains.registry import ChainRegistry

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = Pubkey.from_string(SPL_TOKEN_PROGRAM_ID)


class SolanaWalletAdapter(ProtocolAdapter):
    """
    Adapter for plain Solana wallet holdings.

    Reports the native SOL balance plus SPL token accounts whose mint is one
    of the chain's known ``contracts``; other mints are skipped.

    Parameters
    ----------
    chain_registry : ChainRegistry
        Registry providing the Solana chain config

    """

    protocol = ProtocolInfo(
        id="solana-wallet",
        name="Solana Wallet",
        category=ProtocolCategory.WALLET,
        website="",
    )
    supported_chains: tuple[ChainId, ...] = (SOLANA_CHAIN_ID,)

    def __init__(self, chain_registry: "ChainRegistry") -> None:
        self.chain_registry = chain_registry

    def get_positions(self, client: Any, address: str, chain_id: ChainId) -> list[Position]:
        config = self.chain_registry.get_chain(chain_id)
        if chain_id not in self.supported_chains or config is None:
            return []

        try:
            owner = Pubkey.from_string(address)
        except ValueError:
            # EVM addresses are queried against every chain; they have no Solana account
            logger.debug("Skipping Solana lookup for non-Solana address %s", address)
            return []

        positions = []

        # Native balance failures are transport failures; let them propagate
        lamports = int(client.get_balance(owner).value)
        if lamports > 0:
            currency = config.native_currency
            token = make_token_balance(SOLANA_NATIVE_MINT, currency.symbol, currency.decimals, lamports)
            positions.append(self._position(chain_id, "native", token))

        positions.extend(self._spl_positions(client, owner, chain_id, config.contracts))
        return positions

    def get_yield_rates(self, client: Any, chain_id: ChainId) -> list[YieldRate]:
        return []

    def _spl_positions(
        self,
        client: Any,
        owner: Pubkey,
        chain_id: ChainId,
        contracts: dict[str, str],
    ) -> list[Position]:
        known = {mint: key.upper() for key, mint in contracts.items()}

        try:
            response = client.get_token_accounts_by_owner_json_parsed(
                owner, TokenAccountOpts(program_id=TOKEN_PROGRAM_ID)
            )
        except Exception as e:
            reraise_if_transport_error(e)
            logger.debug("SPL token accounts unavailable for %s: %s", owner, e)
            return []

        # An owner can hold several token accounts for the same mint
        balances: dict[str, tuple[int, int]] = {}
        for keyed_account in response.value:
            info = keyed_account.account.data.parsed.get("info", {})
            mint = info.get("mint")
            amount = info.get("tokenAmount", {})
            balance = int(amount.get("amount", 0))
            if balance == 0 or mint not in known:
                continue
            held, _ = balances.get(mint, (0, 0))
            balances[mint] = (held + balance, int(amount.get("decimals", 0)))

        return [
            self._position(chain_id, mint, make_token_balance(mint, known[mint], decimals, balance))
            for mint, (balance, decimals) in balances.items()
        ]

    def _position(self, chain_id: ChainId, key: str, token: TokenBalance) -> Position:
        return Position(
            id=f"{self.protocol.id}-{chain_id}-{key}",
            protocol=self.protocol,
            chain_id=chain_id,
            position_type=PositionType.WALLET,
            tokens=[token],
        )
