"""Retry logic with exponential backoff and RPC error classification."""

import random
import time
from collections.abc import Callable
from typing import TypeVar

import httpx
import requests

T = TypeVar("T")

RATE_LIMIT_SIGNATURES = ("rate limit", "too many requests", "429", "throttl")

CONNECTION_SIGNATURES = (
    "econnrefused",
    "connection refused",
    "enotfound",
    "name or service not known",
    "nodename nor servname",
    "etimedout",
    "timed out",
    "timeout",
    "socket hang up",
    "network",
    "fetch failed",
    "connection aborted",
    "connection reset",
)

CONNECTION_ERROR_TYPES: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    requests.ConnectionError,
    requests.Timeout,
    httpx.TransportError,
)


class RetryConfig:
    """
    Configuration for retry behavior.

    Parameters
    ----------
    max_retries : int
        Maximum number of retry attempts after the first call
    base_delay : float
        Initial delay in seconds before first retry
    max_delay : float
        Maximum delay between retries
    exponential_base : float
        Base for exponential backoff calculation
    jitter : float
        Relative jitter applied to each delay (0.3 == +/-30%)

    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        exponential_base: float = 2.0,
        jitter: float = 0.3,
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay for a given retry attempt using exponential backoff.

        Parameters
        ----------
        attempt : int
            Current attempt number (0-indexed)

        Returns
        -------
        float
            Delay in seconds

        """
        delay = self.base_delay * (self.exponential_base**attempt)
        if self.jitter:
            delay *= 1 + random.uniform(-self.jitter, self.jitter)
        return max(0.0, min(delay, self.max_delay))


def with_retry(
    func: Callable[[], T],
    config: RetryConfig | None = None,
    on_retry: Callable[[Exception, int], None] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> T:
    """
    Call ``func`` until it succeeds or the retry budget is spent.

    Parameters
    ----------
    func : Callable[[], T]
        Zero-argument callable to execute
    config : RetryConfig | None
        Retry configuration. Uses default config if None.
    on_retry : Callable[[Exception, int], None] | None
        Called with the error and the 1-based retry number before each wait
    sleep : Callable[[float], None] | None
        Sleep function (defaults to time.sleep)

    Returns
    -------
    T
        Result of the first successful call

    Raises
    ------
    Exception
        The last error if every attempt fails

    """
    config = config or RetryConfig()
    sleep = sleep or time.sleep
    last_exception: Exception | None = None

    for attempt in range(config.max_retries + 1):
        try:
            return func()
        except Exception as e:
            last_exception = e

            # Don't retry on last attempt
            if attempt == config.max_retries:
                break

            delay = config.get_delay(attempt)
            if on_retry is not None:
                on_retry(e, attempt + 1)
            sleep(delay)

    raise last_exception  # type: ignore[misc]


def is_rate_limit_error(error: BaseException) -> bool:
    """Check if an error looks like provider rate limiting."""
    message = str(error).lower()
    return any(signature in message for signature in RATE_LIMIT_SIGNATURES)


def is_connection_error(error: BaseException) -> bool:
    """
    Check if an error is a connection/network failure.

    Wrapped errors count by their cause, since solana-py re-raises transport
    failures as ``SolanaRpcException``.

    """
    if isinstance(error, CONNECTION_ERROR_TYPES):
        return True
    message = str(error).lower()
    if any(signature in message for signature in CONNECTION_SIGNATURES):
        return True
    return error.__cause__ is not None and is_connection_error(error.__cause__)


def should_rotate_rpc(error: BaseException) -> bool:
    """
    Check if an error should count towards rotating away from an endpoint.

    Parameters
    ----------
    error : BaseException
        Error raised by an RPC call

    Returns
    -------
    bool
        True for rate-limit and connection errors, False for everything else
        (reverts, malformed responses, application errors)

    """
    return is_rate_limit_error(error) or is_connection_error(error)
