"""
Async retry helpers for Teamwork HTTP calls.

Transient failures (timeouts, connection errors, 5xx responses) are retried
with exponential backoff and jitter. Client errors (4xx) fail immediately:
a rejected token or an unknown task id will not get better by asking again.

Example:
    >>> import httpx
    >>> from scopesync.core.teamwork.http import with_retry
    >>>
    >>> @with_retry(max_retries=2)
    ... async def fetch(client: httpx.AsyncClient, url: str) -> httpx.Response:
    ...     response = await client.get(url)
    ...     response.raise_for_status()
    ...     return response
"""

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig:
    """
    Backoff settings for retried requests.

    Attributes:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Delay in seconds before the first retry (default: 1.0)
        multiplier: Exponential backoff multiplier (default: 2.0)
        jitter_ratio: Random variance applied to each delay (default: 0.2 = ±20%)
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        multiplier: float = 2.0,
        jitter_ratio: float = 0.2,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.jitter_ratio = jitter_ratio

    def calculate_delay(self, attempt: int) -> float:
        """
        Delay before retry number `attempt` (0-indexed).

        delay = base_delay * multiplier ** attempt, then ±jitter_ratio.
        """
        delay = self.base_delay * (self.multiplier**attempt)
        if self.jitter_ratio:
            variance = delay * self.jitter_ratio
            delay += random.uniform(-variance, variance)
        return max(0.0, delay)


def is_retryable_error(exception: BaseException) -> bool:
    """
    Decide whether an exception is worth retrying.

    HTTPStatusError is checked first because it is also an httpx.HTTPError;
    only 5xx statuses are retryable. Timeouts and other request errors are
    retryable. Anything else (parse errors, programming errors) is not.
    """
    if isinstance(exception, httpx.HTTPStatusError):
        return 500 <= exception.response.status_code < 600
    if isinstance(exception, (httpx.TimeoutException, httpx.RequestError)):
        return True
    return False


def with_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    multiplier: float = 2.0,
    jitter_ratio: float = 0.2,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorate a coroutine function with retry and exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        multiplier: Exponential backoff multiplier
        jitter_ratio: Random variance ratio for delays

    Returns:
        Decorator wrapping the coroutine function
    """
    config = RetryConfig(
        max_retries=max_retries,
        base_delay=base_delay,
        multiplier=multiplier,
        jitter_ratio=jitter_ratio,
    )

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_async(func, config, *args, **kwargs)

        return wrapper

    return decorator


async def retry_async(
    func: Callable[..., Awaitable[T]],
    config: RetryConfig,
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Await `func(*args, **kwargs)`, retrying transient failures per `config`.

    Raises:
        The last exception once retries are exhausted, or the first
        non-retryable exception immediately.
    """
    func_name = getattr(func, "__name__", repr(func))
    attempt = 0
    while True:
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable_error(e):
                logger.debug("%s: non-retryable error on attempt %d: %s", func_name, attempt + 1, e)
                raise
            if attempt >= config.max_retries:
                logger.warning("%s: max retries (%d) exceeded: %s", func_name, config.max_retries, e)
                raise

            delay = config.calculate_delay(attempt)
            logger.info(
                "%s: retry %d/%d after %.2fs due to: %s",
                func_name,
                attempt + 1,
                config.max_retries,
                delay,
                e,
            )
            await asyncio.sleep(delay)
            attempt += 1


__all__ = [
    "RetryConfig",
    "is_retryable_error",
    "retry_async",
    "with_retry",
]
