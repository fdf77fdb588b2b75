"""Protocol adapter contract and shared on-chain helpers."""

import logging
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from web3 import Web3

from defi_portfolio.core.models import Position, ProtocolInfo, TokenBalance, YieldRate
from defi_portfolio.protocols.abis import ERC20_ABI
from defi_portfolio.rpc.retry import should_rotate_rpc
from defi_portfolio.types import ChainId

logger = logging.getLogger(__name__)

RAY = Decimal(10) ** 27
WAD = Decimal(10) ** 18
SECONDS_PER_YEAR = Decimal("31557600")  # 365.25 days

DEFAULT_DECIMALS = 18
UNKNOWN_SYMBOL = "UNKNOWN"


@runtime_checkable
class ProtocolAdapter(Protocol):
    """
    Read-only integration with one DeFi protocol.

    Adapters receive the chain client from the caller and never manage RPC
    endpoints themselves, so every call they make benefits from the chain
    registry's failover.

    Attributes
    ----------
    protocol : ProtocolInfo
        Static identity of the protocol
    supported_chains : tuple[ChainId, ...]
        Chains where the protocol is deployed

    """

    protocol: ProtocolInfo
    supported_chains: tuple[ChainId, ...]

    def has_positions(self, client: Any, address: str, chain_id: ChainId) -> bool:
        """
        Check whether an address holds anything in this protocol on a chain.

        Never raises; any failure reads as "no positions".

        """
        if chain_id not in self.supported_chains:
            return False
        try:
            return len(self.get_positions(client, address, chain_id)) > 0
        except Exception as e:
            logger.debug("%s has_positions failed on chain %s: %s", self.protocol.id, chain_id, e)
            return False

    def get_positions(self, client: Any, address: str, chain_id: ChainId) -> list[Position]:
        """
        Fetch every position an address holds in this protocol on a chain.

        Returns an empty list for unsupported chains. A failing sub-query
        skips only its own entry; rate-limit and connection errors propagate
        so the caller can fail over.

        """
        ...

    def get_yield_rates(self, client: Any, chain_id: ChainId) -> list[YieldRate]:
        """Fetch the rates currently offered by this protocol on a chain."""
        ...


def reraise_if_transport_error(error: Exception) -> None:
    """
    Re-raise errors that indicate an unhealthy RPC endpoint.

    Adapters call this from ``except`` blocks around individual contract
    reads: contract-level failures are skipped, transport failures escape to
    the chain registry.

    """
    if should_rotate_rpc(error):
        raise error


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


def call_contract(client: Any, address: str, abi: list[dict], function: str, *args: Any) -> Any:
    """
    Call a view function on a contract.

    Parameters
    ----------
    client : Any
        Web3 client for the chain
    address : str
        Contract address
    abi : list[dict]
        Contract ABI (only the called function is required)
    function : str
        Function name
    *args : Any
        Function arguments

    Returns
    -------
    Any
        Decoded return value

    """
    contract = client.eth.contract(address=checksum(address), abi=abi)
    return getattr(contract.functions, function)(*args).call()


def get_token_balance(client: Any, token: str, owner: str) -> int:
    return int(call_contract(client, token, ERC20_ABI, "balanceOf", checksum(owner)))


def get_token_decimals(client: Any, token: str) -> int:
    """Read ERC-20 decimals, falling back to 18 on any failure."""
    try:
        return int(call_contract(client, token, ERC20_ABI, "decimals"))
    except Exception as e:
        logger.debug("decimals() failed for %s: %s", token, e)
        return DEFAULT_DECIMALS


def get_token_symbol(client: Any, token: str) -> str:
    """Read ERC-20 symbol, falling back to 'UNKNOWN' on any failure."""
    try:
        return str(call_contract(client, token, ERC20_ABI, "symbol"))
    except Exception as e:
        logger.debug("symbol() failed for %s: %s", token, e)
        return UNKNOWN_SYMBOL


def format_units(raw: int, decimals: int) -> str:
    """
    Format a raw integer amount as a decimal string.

    Trailing zeros are dropped, so ``format_units(1_500_000, 6) == "1.5"``
    and ``format_units(0, 18) == "0"``.

    Parameters
    ----------
    raw : int
        Raw on-chain amount
    decimals : int
        Token decimals

    Returns
    -------
    str
        Human-readable amount

    """
    sign = "-" if raw < 0 else ""
    digits = str(abs(raw)).rjust(decimals + 1, "0")
    split = len(digits) - decimals
    integer, fraction = digits[:split], digits[split:].rstrip("0")
    return f"{sign}{integer}.{fraction}" if fraction else f"{sign}{integer}"


def ray_to_rate(ray: int) -> Decimal:
    return Decimal(ray) / RAY


def apr_to_apy(apr: Decimal) -> Decimal:
    """Convert an APR to APY assuming per-second compounding."""
    if apr == 0:
        return Decimal("0")
    return (1 + apr / SECONDS_PER_YEAR) ** SECONDS_PER_YEAR - 1


def per_second_rate_to_apy(rate_ray: int) -> Decimal:
    """
    Convert a per-second accumulation factor in ray to APY.

    Used by Maker's Pot, where ``dsr() == 1e27`` means 0%.

    """
    return ray_to_rate(rate_ray) ** SECONDS_PER_YEAR - 1


def make_token_balance(address: str, symbol: str, decimals: int, balance: int) -> TokenBalance:
    return TokenBalance(
        address=address,
        symbol=symbol,
        decimals=decimals,
        balance=balance,
        balance_formatted=format_units(balance, decimals),
    )
