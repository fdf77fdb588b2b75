"""RPC layer with client construction, retry logic, and error classification."""

from defi_portfolio.rpc.provider import create_client, fetch_block_height
from defi_portfolio.rpc.retry import (
    RetryConfig,
    is_connection_error,
    is_rate_limit_error,
    should_rotate_rpc,
    with_retry,
)

__all__ = [
    "RetryConfig",
    "create_client",
    "is_connection_error",
    "is_rate_limit_error",
    "fetch_block_height",
    "should_rotate_rpc",
    "with_retry",
]
