"""Tests for the chain registry: client caching, rotation, and failover."""

import threading

import pytest
from conftest import FakeClient, make_chain

from defi_portfolio.chains import ChainRegistry, UnregisteredChainError
from defi_portfolio.rpc import RetryConfig


def connection_refused(client):
    raise ConnectionError(f"ECONNREFUSED {client.url}")


def reverted(client):
    raise ValueError("execution reverted")


def test_get_client_is_cached(make_registry):
    """Test that repeated lookups return the same client."""
    registry = make_registry()

    client = registry.get_client(1)

    assert isinstance(client, FakeClient)
    assert client.url == "https://a"
    assert registry.get_client(1) is client


def test_get_client_unregistered_chain(make_registry):
    """Test that unknown chains raise a structural error."""
    registry = make_registry()

    with pytest.raises(UnregisteredChainError) as exc_info:
        registry.get_client(999)

    assert exc_info.value.chain_id == 999
    assert "999" in str(exc_info.value)


def test_rotate_rpc_advances_and_wraps(make_registry):
    """Test rotation order and wrap-around back to the primary."""
    registry = make_registry()

    urls = []
    for _ in range(4):
        urls.append(registry.get_client(1).url)
        registry.rotate_rpc(1)

    assert urls == ["https://a", "https://b", "https://c", "https://a"]


def test_rotate_rpc_evicts_cached_client(make_registry):
    """Test that rotation replaces the cached client."""
    registry = make_registry()
    before = registry.get_client(1)

    registry.rotate_rpc(1)
    after = registry.get_client(1)

    assert after is not before
    assert after.url == "https://b"
    assert registry.get_current_rpc_url(1) == "https://b"


def test_rotate_rpc_unknown_chain_is_noop(make_registry):
    """Test that rotating an unregistered chain does nothing."""
    registry = make_registry()

    registry.rotate_rpc(999)

    assert registry.get_current_rpc_url(1) == "https://a"


def test_rotation_is_per_chain(make_registry):
    """Test that rotating one chain leaves the others alone."""
    registry = make_registry(make_chain(1), make_chain(10, "Optimism", ("https://op-a", "https://op-b")))

    registry.rotate_rpc(1)

    assert registry.get_client(1).url == "https://b"
    assert registry.get_client(10).url == "https://op-a"


def test_register_chain_overwrites_and_resets(make_registry):
    """Test re-registering a chain resets it to its new primary endpoint."""
    registry = make_registry()
    registry.rotate_rpc(1)

    registry.register_chain(make_chain(1, urls=("https://x", "https://y")))

    assert registry.get_client(1).url == "https://x"
    assert len(registry.get_all_chains()) == 1


def test_catalog_accessors(make_registry):
    """Test chain lookups and EVM filtering."""
    registry = make_registry(make_chain(1), make_chain("solana", "Solana", ("https://sol",)))

    assert registry.get_chain(1).name == "Ethereum"
    assert registry.get_chain(2) is None
    assert registry.get_supported_chain_ids() == [1, "solana"]
    assert registry.get_evm_chain_ids() == [1]


def test_with_failover_success_records_health(make_registry, clock):
    """Test that a successful call resets the failure count and stamps success."""
    registry = make_registry()

    assert registry.with_failover(1, lambda client: client.url) == "https://a"

    health = registry.get_endpoint_health(1, 0)
    assert health.failure_count == 0
    assert health.last_success_time == clock.now


def test_with_failover_success_resets_failures(make_registry):
    """Test that a success clears earlier failures on the same endpoint."""
    registry = make_registry()
    for _ in range(2):
        with pytest.raises(ConnectionError):
            registry.with_failover(1, connection_refused, max_retries=0)
    assert registry.get_endpoint_health(1, 0).failure_count == 2

    registry.with_failover(1, lambda client: None)

    assert registry.get_endpoint_health(1, 0).failure_count == 0
    assert registry.get_current_rpc_url(1) == "https://a"


def test_with_failover_rotates_after_three_failures(make_registry, sleeps):
    """Test the exhaustion scenario across endpoints A, B and C."""
    registry = make_registry()

    with pytest.raises(ConnectionError):
        registry.with_failover(1, connection_refused)

    # Three failures on A trip rotation; the fourth attempt lands on B
    assert registry.get_current_rpc_url(1) == "https://b"
    assert registry.get_endpoint_health(1, 0).failure_count == 3
    assert registry.get_endpoint_health(1, 1).failure_count == 1
    assert registry.get_endpoint_health(1, 2).failure_count == 0
    assert sleeps == [1.0, 2.0, 4.0]


def test_with_failover_later_attempt_uses_new_endpoint(make_registry):
    """Test that retries after a rotation reach the next endpoint."""
    registry = make_registry()
    seen = []

    def rate_limited_on_a(client):
        seen.append(client.url)
        if client.url == "https://a":
            raise RuntimeError("429 Too Many Requests")
        return "ok"

    assert registry.with_failover(1, rate_limited_on_a) == "ok"
    assert seen == ["https://a", "https://a", "https://a", "https://b"]


def test_with_failover_rotates_exactly_once_per_threshold(make_registry):
    """Test that reaching the threshold rotates a single step."""
    registry = make_registry()

    with pytest.raises(ConnectionError):
        registry.with_failover(1, connection_refused, max_retries=2)

    assert registry.get_current_rpc_url(1) == "https://b"

    registry.with_failover(1, lambda client: None)
    assert registry.get_current_rpc_url(1) == "https://b"


def test_non_transport_errors_never_rotate(make_registry, sleeps):
    """Test that reverts are retried and counted but never cause rotation."""
    registry = make_registry()

    with pytest.raises(ValueError, match="execution reverted"):
        registry.with_failover(1, reverted)

    assert registry.get_current_rpc_url(1) == "https://a"
    assert registry.get_endpoint_health(1, 0).failure_count == 4
    assert len(sleeps) == 3


def test_single_endpoint_never_rotates(make_registry):
    """Test that a chain with one RPC stays on it."""
    registry = make_registry(make_chain(1, urls=("https://only",)))

    with pytest.raises(ConnectionError):
        registry.with_failover(1, connection_refused, max_retries=5)

    assert registry.get_current_rpc_url(1) == "https://only"
    assert registry.get_endpoint_health(1, 0).failure_count == 6


def test_sliding_window_resets_stale_failures(make_registry, clock):
    """Test that a failure more than 60s after the previous one starts over."""
    registry = make_registry()

    for _ in range(2):
        with pytest.raises(ConnectionError):
            registry.with_failover(1, connection_refused, max_retries=0)
    assert registry.get_endpoint_health(1, 0).failure_count == 2

    clock.advance(61)
    with pytest.raises(ConnectionError):
        registry.with_failover(1, connection_refused, max_retries=0)

    assert registry.get_endpoint_health(1, 0).failure_count == 1
    assert registry.get_current_rpc_url(1) == "https://a"


def test_sliding_window_keeps_recent_failures(make_registry, clock):
    """Test that failures within the window accumulate to a rotation."""
    registry = make_registry()

    for _ in range(3):
        clock.advance(30)
        with pytest.raises(ConnectionError):
            registry.with_failover(1, connection_refused, max_retries=0)

    assert registry.get_current_rpc_url(1) == "https://b"


def test_stale_failure_does_not_rotate_twice(make_registry):
    """Test that a failure recorded against an endpoint already rotated away from is ignored for rotation."""
    registry = make_registry()
    error = ConnectionError("ECONNREFUSED")

    for _ in range(3):
        registry._record_failure(1, 0, error)
    assert registry.get_current_rpc_url(1) == "https://b"

    # A concurrent caller still holding the A client reports late
    rotated = registry._record_failure(1, 0, error)

    assert rotated is False
    assert registry.get_current_rpc_url(1) == "https://b"


def test_with_failover_unregistered_chain_not_retried(make_registry, sleeps):
    """Test that structural errors skip the retry loop."""
    registry = make_registry()
    calls = []

    with pytest.raises(UnregisteredChainError):
        registry.with_failover(999, calls.append)

    assert calls == []
    assert sleeps == []


def test_with_failover_propagates_last_error(make_registry):
    """Test that the final attempt's error is the one raised."""
    registry = make_registry()
    attempts = iter(range(10))

    def failing(client):
        raise ValueError(f"attempt {next(attempts)}")

    with pytest.raises(ValueError, match="attempt 2"):
        registry.with_failover(1, failing, max_retries=2)


def test_with_failover_uses_registry_retry_config(clock):
    """Test that the default retry budget comes from the registry's config."""
    sleeps = []
    registry = ChainRegistry(
        [make_chain()],
        retry_config=RetryConfig(max_retries=1, base_delay=0.5, jitter=0.0),
        client_factory=lambda config, url: FakeClient(url),
        clock=clock,
        sleep=sleeps.append,
    )

    with pytest.raises(ConnectionError):
        registry.with_failover(1, connection_refused)

    assert sleeps == [0.5]


def test_health_check_success_and_failure(make_registry):
    """Test health checks record outcomes against the current endpoint."""

    def liveness_check(client):
        if client.url == "https://a":
            raise ConnectionError("timed out")
        return 1

    registry = make_registry(liveness_check=liveness_check)

    assert registry.health_check(1) is False
    assert registry.get_endpoint_health(1, 0).failure_count == 1

    registry.rotate_rpc(1)
    assert registry.health_check(1) is True
    assert registry.get_endpoint_health(1, 1).last_success_time is not None


def test_health_check_unregistered_chain(make_registry):
    """Test that health checks on unknown chains report False."""
    registry = make_registry()

    assert registry.health_check(999) is False


def test_health_check_all_is_independent_per_chain(make_registry):
    """Test that one chain's failing liveness check does not affect another's."""

    def liveness_check(client):
        if client.url.startswith("https://op"):
            raise ConnectionError("ECONNREFUSED")
        return 100

    registry = make_registry(
        make_chain(1),
        make_chain(10, "Optimism", ("https://op-a", "https://op-b")),
        liveness_check=liveness_check,
    )

    assert registry.health_check_all() == {1: True, 10: False}


def test_get_rpc_status_has_no_side_effects(make_registry):
    """Test that status snapshots neither build clients nor create health records."""
    built = []

    def factory(config, url):
        built.append(url)
        return FakeClient(url)

    registry = make_registry(client_factory=factory)

    status = registry.get_rpc_status()

    assert status[1].rpc_url == "https://a"
    assert status[1].rpc_index == 0
    assert status[1].health.failure_count == 0
    assert built == []
    assert registry._health == {}


def test_get_rpc_status_returns_copies(make_registry):
    """Test that mutating a snapshot does not change registry state."""
    registry = make_registry()
    with pytest.raises(ConnectionError):
        registry.with_failover(1, connection_refused, max_retries=0)

    status = registry.get_rpc_status()
    status[1].health.failure_count = 99

    assert registry.get_endpoint_health(1, 0).failure_count == 1


def test_from_defaults_applies_env_override():
    """Test building a registry from the built-in catalog with an RPC override."""
    registry = ChainRegistry.from_defaults(
        environ={"ETHEREUM_RPC_URL": "https://private.example"},
        client_factory=lambda config, url: FakeClient(url),
    )

    assert registry.get_current_rpc_url(1) == "https://private.example"
    assert "solana" in registry.get_supported_chain_ids()
    assert "solana" not in registry.get_evm_chain_ids()


def run_in_threads(count, target):
    threads = [threading.Thread(target=target) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


def test_concurrent_failures_are_all_counted(make_registry):
    """Test that simultaneous failures on one endpoint each increment its counter."""
    registry = make_registry()
    workers = 20
    barrier = threading.Barrier(workers, timeout=5)
    raised = []

    def fail_together(client):
        barrier.wait()
        raise ValueError("execution reverted")

    def call():
        try:
            registry.with_failover(1, fail_together, max_retries=0)
        except ValueError as e:
            raised.append(e)

    run_in_threads(workers, call)

    assert len(raised) == workers
    assert registry.get_endpoint_health(1, 0).failure_count == workers
    assert registry.get_current_rpc_url(1) == "https://a"


def test_concurrent_transport_failures_rotate_once(make_registry):
    """Test that racing failures on the same endpoint advance the chain a single step."""
    registry = make_registry()
    workers = 10
    barrier = threading.Barrier(workers, timeout=5)
    seen = []
    raised = []

    def refuse_together(client):
        seen.append(client.url)
        barrier.wait()
        raise ConnectionError("ECONNREFUSED")

    def call():
        try:
            registry.with_failover(1, refuse_together, max_retries=0)
        except ConnectionError as e:
            raised.append(e)

    run_in_threads(workers, call)

    assert seen == ["https://a"] * workers
    assert len(raised) == workers
    assert registry.get_rpc_status()[1].rpc_index == 1
    assert registry.get_current_rpc_url(1) == "https://b"
    assert registry.get_endpoint_health(1, 0).failure_count == workers
