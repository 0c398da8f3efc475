"""Retry with exponential backoff for store round trips"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Iterator, Type

logger = logging.getLogger(__name__)


def backoff_delays(
    max_attempts: int, initial_delay: float, max_delay: float, exponential_base: float
) -> Iterator[float]:
    """Sleep before each retry (max_attempts - 1 values)"""
    delay = initial_delay
    for _ in range(max(0, max_attempts - 1)):
        yield delay
        delay = min(delay * exponential_base, max_delay)


def retry_async(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    exponential_base: float = 2.0,
    exceptions: tuple[Type[BaseException], ...] = (Exception,),
    log_prefix: str = "",
) -> Callable:
    """
    Retry decorator for async functions.

    Args:
        max_attempts: Total attempts including the first call
        initial_delay: Seconds to wait before the first retry
        max_delay: Upper bound of a single wait
        exponential_base: Growth factor of the wait
        exceptions: Exception types that trigger a retry; anything else propagates at once
        log_prefix: Prefix for log messages

    Example:
        @retry_async(max_attempts=3, exceptions=(ServiceError,))
        async def fetch():
            return await store.fetch_all()
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delays = backoff_delays(max_attempts, initial_delay, max_delay, exponential_base)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    delay = next(delays, None)
                    if delay is None:
                        logger.error(
                            f"{log_prefix}[Retry] {func.__name__} failed after {attempt} attempt(s): "
                            f"{type(e).__name__}: {e}"
                        )
                        raise
                    logger.warning(
                        f"{log_prefix}[Retry] Attempt {attempt}/{max_attempts} failed for {func.__name__}: "
                        f"{type(e).__name__}: {e}. Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
