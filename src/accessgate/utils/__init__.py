"""Utility modules for AccessGate."""

from accessgate.utils.retry import RetryConfig, async_retry_with_backoff

__all__ = [
    "RetryConfig",
    "async_retry_with_backoff",
]
