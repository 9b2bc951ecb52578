"""Bounded retry for async collaborator calls."""

import asyncio
import random
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Maximum number of retry attempts after the first call
        initial_delay: Delay in seconds before the first retry
        max_delay: Maximum delay in seconds between retries
        exponential_base: Base for exponential backoff calculation
        jitter: Whether to randomize delays between 50% and 100%
        retryable_exceptions: Exception types that trigger a retry
    """

    max_retries: int = 1
    initial_delay: float = 0.2
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = False
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt number with exponential backoff.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds to wait before retry
        """
        delay = min(
            self.initial_delay * (self.exponential_base**attempt),
            self.max_delay,
        )

        if self.jitter:
            delay = delay * (0.5 + random.random() * 0.5)

        return delay


def async_retry_with_backoff(
    config: Optional[RetryConfig] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator for retrying async functions with exponential backoff.

    Exceptions outside ``config.retryable_exceptions`` propagate immediately.

    Args:
        config: Retry configuration (uses defaults if None)

    Returns:
        Decorated async function with retry logic

    Example:
        scored = await async_retry_with_backoff(
            RetryConfig(max_retries=1, retryable_exceptions=(ScorerUnavailableError,))
        )(scorer.score)(profile, query, context)
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    if attempt >= config.max_retries:
                        logger.error(
                            "Max retries exhausted",
                            function=getattr(func, "__name__", repr(func)),
                            attempt=attempt + 1,
                            max_retries=config.max_retries,
                            error=str(e),
                        )
                        raise

                    delay = config.calculate_delay(attempt)
                    logger.warning(
                        "Retrying after failure",
                        function=getattr(func, "__name__", repr(func)),
                        attempt=attempt + 1,
                        max_retries=config.max_retries,
                        delay_seconds=round(delay, 2),
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
