"""
Bounded retry with exponential backoff.

Usage:
    from core.retry import with_retry

    result = await with_retry(lambda: chain.invoke(payload), max_retries=3, initial_delay=1.0)
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(retry: int, initial_delay: float) -> float:
    """Delay before the given retry (1-based): initial, 2x initial, 4x initial, ..."""
    return initial_delay * (2 ** (retry - 1))


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``fn()`` until it succeeds, retrying up to ``max_retries`` times.

    The first call is not a retry, so ``fn`` runs at most ``max_retries + 1``
    times. The last error is re-raised once the retries are used up.
    """
    retries = 0

    while True:
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            retries += 1

            if retries > max_retries:
                logger.error("Failed after %d retries: %s", max_retries, e)
                raise

            delay = backoff_delay(retries, initial_delay)
            logger.warning("Retry %d/%d in %.1fs after error: %s", retries, max_retries, delay, e)
            await sleep(delay)
