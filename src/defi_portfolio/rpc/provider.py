"""Network client construction for EVM and Solana RPC endpoints."""

import logging
from typing import TYPE_CHECKING, Any

from solana.rpc.api import Client as SolanaClient
from web3 import Web3

if TYPE_CHECKING:
    from defi_portfolio.chains.config import ChainConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def create_client(config: "ChainConfig", rpc_url: str, timeout: int = DEFAULT_TIMEOUT) -> Any:
    """
    Build a network client for one RPC endpoint of a chain.

    Construction does no network I/O; the first request is made by the caller.

    Parameters
    ----------
    config : ChainConfig
        Chain the endpoint belongs to
    rpc_url : str
        Endpoint URL
    timeout : int
        Per-request timeout in seconds

    Returns
    -------
    Any
        ``Web3`` instance for EVM chains, ``solana.rpc.api.Client`` for Solana

    """
    logger.debug("[Chain %s] Creating client for %s", config.id, rpc_url)

    if config.network == "solana":
        return SolanaClient(rpc_url, timeout=timeout)

    # Retries are handled by the chain registry, not the transport
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


def fetch_block_height(client: Any) -> int:
    """
    Issue a minimal liveness request through a client.

    Parameters
    ----------
    client : Any
        Client returned by :func:`create_client`

    Returns
    -------
    int
        Latest block number (EVM) or slot (Solana)

    """
    if isinstance(client, SolanaClient):
        return client.get_slot().value
    return client.eth.block_number
