"""Backoff for object store calls that fail transiently."""

import asyncio
import logging
from functools import wraps
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from shared.exceptions import TransientIO

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delays(max_retries: int, initial_delay: float, exponential_base: float, max_delay: float):
    """Sleep durations between attempts: initial, initial*base, ... capped at max_delay."""
    return [min(initial_delay * exponential_base ** n, max_delay) for n in range(max_retries)]


def retry_with_exponential_backoff(
    max_retries: int = 2,
    initial_delay: float = 0.5,
    exponential_base: float = 2.0,
    max_delay: float = 10.0,
    exceptions: Tuple[Type[Exception], ...] = (TransientIO,)
):
    """
    Decorator to retry an object store coroutine with exponential backoff.

    Only ``exceptions`` are retried; anything else (a missing key, for
    instance) propagates on the first attempt. After the last attempt the
    final error is re-raised unchanged.

    Args:
        max_retries: Retries after the first attempt
        initial_delay: Seconds before the first retry
        exponential_base: Growth factor of the delay
        max_delay: Upper bound on any single delay
        exceptions: Exception types worth another attempt
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        delays = backoff_delays(max_retries, initial_delay, exponential_base, max_delay)

        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            for attempt, delay in enumerate(delays, start=1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{len(delays) + 1}): {e}; "
                        f"retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)

            try:
                return await func(*args, **kwargs)
            except exceptions as e:
                logger.error(f"{func.__name__} gave up after {len(delays) + 1} attempts: {e}")
                raise

        return wrapper

    return decorator
