"""Chain registry with per-chain client caching, RPC rotation, and failover."""

import copy
import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

from defi_portfolio.chains.config import ChainConfig
from defi_portfolio.rpc.provider import create_client, fetch_block_height
from defi_portfolio.rpc.retry import RetryConfig, should_rotate_rpc, with_retry
from defi_portfolio.types import ChainId

logger = logging.getLogger(__name__)

T = TypeVar("T")

FAILURE_THRESHOLD = 3  # Rotate after this many consecutive failures
HEALTH_RESET_SECONDS = 60.0  # Restart the failure count after a quiet minute


class ChainRegistryError(Exception):
    """Base error for chain registry failures."""


class UnregisteredChainError(ChainRegistryError):
    """Raised when an operation names a chain that was never registered."""

    def __init__(self, chain_id: ChainId) -> None:
        self.chain_id = chain_id
        super().__init__(f"Chain {chain_id} not registered")


@dataclass
class EndpointHealth:
    """
    Health counters for one (chain, RPC index) slot.

    Attributes
    ----------
    failure_count : int
        Consecutive failures inside the sliding window
    last_failure_time : float | None
        Unix timestamp of the most recent failure
    last_success_time : float | None
        Unix timestamp of the most recent success

    """

    failure_count: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None


@dataclass(frozen=True)
class RpcStatus:
    """Snapshot of the active endpoint of a chain."""

    rpc_url: str
    rpc_index: int
    health: EndpointHealth


class ChainRegistry:
    """
    Owns one lazily-built network client per chain and runs chain-scoped
    operations with retry and automatic endpoint rotation.

    Construct one instance at process start and pass it to the services that
    need chain access.

    Parameters
    ----------
    configs : Iterable[ChainConfig] | None
        Chains to register up front
    retry_config : RetryConfig | None
        Backoff policy for :meth:`with_failover` (base 1s, x2, +/-30%, cap 10s)
    client_factory : Callable[[ChainConfig, str], Any]
        Builds a client for a chain and RPC URL
    liveness_check : Callable[[Any], Any]
        Liveness request used by :meth:`health_check`
    clock : Callable[[], float]
        Time source for health timestamps
    sleep : Callable[[float], None]
        Sleep function used between retries
    failure_threshold : int
        Failures on one endpoint before rotation is considered
    health_reset_seconds : float
        Quiet period after which the failure count starts over

    """

    def __init__(
        self,
        configs: Iterable[ChainConfig] | None = None,
        *,
        retry_config: RetryConfig | None = None,
        client_factory: Callable[[ChainConfig, str], Any] = create_client,
        liveness_check: Callable[[Any], Any] = fetch_block_height,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        failure_threshold: int = FAILURE_THRESHOLD,
        health_reset_seconds: float = HEALTH_RESET_SECONDS,
    ) -> None:
        self.retry_config = retry_config or RetryConfig(
            max_retries=3,
            base_delay=1.0,
            max_delay=10.0,
            exponential_base=2.0,
            jitter=0.3,
        )
        self.client_factory = client_factory
        self.liveness_check = liveness_check
        self.clock = clock
        self.sleep = sleep
        self.failure_threshold = failure_threshold
        self.health_reset_seconds = health_reset_seconds

        self._lock = threading.RLock()
        self._chains: dict[ChainId, ChainConfig] = {}
        self._clients: dict[ChainId, Any] = {}
        self._rpc_index: dict[ChainId, int] = {}
        self._health: dict[tuple[ChainId, int], EndpointHealth] = {}

        for config in configs or []:
            self.register_chain(config)

    @classmethod
    def from_defaults(cls, environ: Mapping[str, str] | None = None, **kwargs: Any) -> "ChainRegistry":
        """
        Build a registry from the built-in chain catalog.

        Parameters
        ----------
        environ : Mapping[str, str] | None
            Environment holding ``<CHAIN>_RPC_URL`` overrides
        **kwargs : Any
            Forwarded to the constructor

        Returns
        -------
        ChainRegistry
            Registry with every catalog chain registered

        """
        from defi_portfolio.data.loader import get_chain_configs

        return cls(get_chain_configs(environ), **kwargs)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def register_chain(self, config: ChainConfig) -> None:
        """Insert or overwrite a chain and reset it to its primary RPC."""
        with self._lock:
            self._chains[config.id] = config
            self._rpc_index[config.id] = 0
            self._clients.pop(config.id, None)

    def get_chain(self, chain_id: ChainId) -> ChainConfig | None:
        return self._chains.get(chain_id)

    def get_all_chains(self) -> list[ChainConfig]:
        return list(self._chains.values())

    def get_supported_chain_ids(self) -> list[ChainId]:
        return list(self._chains.keys())

    def get_evm_chain_ids(self) -> list[int]:
        return [config.id for config in self._chains.values() if config.is_evm]  # type: ignore[misc]

    def get_current_rpc_url(self, chain_id: ChainId) -> str:
        with self._lock:
            config = self._require_chain(chain_id)
            return config.rpc_urls[self._rpc_index.get(chain_id, 0)]

    # ------------------------------------------------------------------
    # Clients and rotation
    # ------------------------------------------------------------------

    def get_client(self, chain_id: ChainId) -> Any:
        """
        Get the cached client for a chain, building it if absent.

        Parameters
        ----------
        chain_id : ChainId
            Chain id

        Returns
        -------
        Any
            Client bound to the chain's current RPC endpoint

        Raises
        ------
        UnregisteredChainError
            If the chain is not registered

        """
        client, _ = self._acquire_client(chain_id)
        return client

    def _acquire_client(self, chain_id: ChainId) -> tuple[Any, int]:
        # Client and index are read together so callers never see a torn pair
        with self._lock:
            config = self._require_chain(chain_id)
            rpc_index = self._rpc_index.get(chain_id, 0)
            client = self._clients.get(chain_id)
            if client is None:
                rpc_url = config.rpc_urls[rpc_index]
                logger.debug("[Chain %s] Using RPC: %s", chain_id, rpc_url)
                client = self.client_factory(config, rpc_url)
                self._clients[chain_id] = client
            return client, rpc_index

    def rotate_rpc(self, chain_id: ChainId) -> None:
        """
        Advance a chain to its next RPC endpoint and drop the cached client.

        Wraps to the first endpoint after the last one. Unknown chains are
        ignored.

        Parameters
        ----------
        chain_id : ChainId
            Chain id

        """
        with self._lock:
            config = self._chains.get(chain_id)
            if config is None:
                return

            current_index = self._rpc_index.get(chain_id, 0)
            next_index = (current_index + 1) % len(config.rpc_urls)

            logger.info(
                "[Chain %s] Rotating RPC from %s to %s",
                chain_id,
                config.rpc_urls[current_index],
                config.rpc_urls[next_index],
            )

            self._rpc_index[chain_id] = next_index
            self._clients.pop(chain_id, None)

    # ------------------------------------------------------------------
    # Health bookkeeping
    # ------------------------------------------------------------------

    def _get_health(self, chain_id: ChainId, rpc_index: int) -> EndpointHealth:
        key = (chain_id, rpc_index)
        health = self._health.get(key)
        if health is None:
            health = EndpointHealth()
            self._health[key] = health
        return health

    def _record_success(self, chain_id: ChainId, rpc_index: int) -> None:
        with self._lock:
            health = self._get_health(chain_id, rpc_index)
            health.failure_count = 0
            health.last_success_time = self.clock()

    def _record_failure(self, chain_id: ChainId, rpc_index: int, error: Exception) -> bool:
        """
        Count a failure against an endpoint and rotate away from it if needed.

        Returns
        -------
        bool
            True if this failure caused a rotation

        """
        with self._lock:
            health = self._get_health(chain_id, rpc_index)
            now = self.clock()

            # Sliding window: a stale failure history starts over at this one
            if health.last_failure_time is not None and now - health.last_failure_time > self.health_reset_seconds:
                health.failure_count = 0

            health.failure_count += 1
            health.last_failure_time = now
            failure_count = health.failure_count

            logger.warning("[Chain %s] RPC failure #%d: %s", chain_id, failure_count, error)

            config = self._chains.get(chain_id)
            if (
                config is not None
                and failure_count >= self.failure_threshold
                and len(config.rpc_urls) > 1
                and should_rotate_rpc(error)
                # A concurrent caller may already have moved past this endpoint
                and self._rpc_index.get(chain_id, 0) == rpc_index
            ):
                self.rotate_rpc(chain_id)
                return True

            return False

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def with_failover(
        self,
        chain_id: ChainId,
        operation: Callable[[Any], T],
        max_retries: int | None = None,
    ) -> T:
        """
        Execute an RPC operation with automatic retry and endpoint rotation.

        Each attempt runs ``operation`` against the chain's current client.
        Failures are counted per endpoint; once an endpoint reaches the failure
        threshold with a rate-limit or connection error, the chain rotates to
        its next endpoint so later attempts use a fresh client. The attempt
        that trips the rotation still fails and is retried after backoff.

        Parameters
        ----------
        chain_id : ChainId
            Chain id
        operation : Callable[[Any], T]
            Receives the chain client and performs the RPC work
        max_retries : int | None
            Extra attempts after the first (default: registry retry config)

        Returns
        -------
        T
            Result of the first successful attempt

        Raises
        ------
        UnregisteredChainError
            If the chain is not registered (never retried)
        Exception
            The last operation error once retries are exhausted

        """
        self._require_chain(chain_id)

        config = self.retry_config
        if max_retries is not None:
            config = copy.copy(self.retry_config)
            config.max_retries = max_retries

        def attempt() -> T:
            client, rpc_index = self._acquire_client(chain_id)
            try:
                result = operation(client)
            except Exception as e:
                self._record_failure(chain_id, rpc_index, e)
                raise
            self._record_success(chain_id, rpc_index)
            return result

        def on_retry(error: Exception, attempt_number: int) -> None:
            logger.warning("[Chain %s] Retry attempt %d: %s", chain_id, attempt_number, error)

        return with_retry(attempt, config, on_retry=on_retry, sleep=self.sleep)

    def health_check(self, chain_id: ChainId) -> bool:
        """
        Verify that a chain's current RPC endpoint responds.

        Parameters
        ----------
        chain_id : ChainId
            Chain id

        Returns
        -------
        bool
            True if the liveness check succeeded

        """
        try:
            client, rpc_index = self._acquire_client(chain_id)
        except ChainRegistryError as e:
            logger.warning("[Chain %s] Health check skipped: %s", chain_id, e)
            return False

        try:
            self.liveness_check(client)
        except Exception as e:
            self._record_failure(chain_id, rpc_index, e)
            return False

        self._record_success(chain_id, rpc_index)
        return True

    def health_check_all(self) -> dict[ChainId, bool]:
        """
        Probe every registered chain concurrently.

        Returns
        -------
        dict[ChainId, bool]
            Liveness result per chain

        """
        chain_ids = self.get_supported_chain_ids()
        if not chain_ids:
            return {}

        with ThreadPoolExecutor(max_workers=len(chain_ids)) as executor:
            results = executor.map(self.health_check, chain_ids)
            return dict(zip(chain_ids, results, strict=True))

    def get_rpc_status(self) -> dict[ChainId, RpcStatus]:
        """
        Get the active endpoint and its health for every chain.

        Returns
        -------
        dict[ChainId, RpcStatus]
            Snapshot per chain; health entries are copies

        """
        status = {}
        with self._lock:
            for chain_id, config in self._chains.items():
                rpc_index = self._rpc_index.get(chain_id, 0)
                health = self._health.get((chain_id, rpc_index), EndpointHealth())
                status[chain_id] = RpcStatus(
                    rpc_url=config.rpc_urls[rpc_index],
                    rpc_index=rpc_index,
                    health=copy.copy(health),
                )
        return status

    def get_endpoint_health(self, chain_id: ChainId, rpc_index: int) -> EndpointHealth:
        """Get a copy of the health counters for one endpoint slot."""
        with self._lock:
            return copy.copy(self._health.get((chain_id, rpc_index), EndpointHealth()))

    def _require_chain(self, chain_id: ChainId) -> ChainConfig:
        config = self._chains.get(chain_id)
        if config is None:
            raise UnregisteredChainError(chain_id)
        return config
