"""
Consistent retry behavior for every outbound request.
Bounded retries, exponential backoff with jitter.
"""
import asyncio
import functools
import random
from typing import Callable, Optional

from ikea_scraper.errors import RetryExhaustedError
from ikea_scraper.config import config
from ikea_scraper.logger import logger


def backoff_delay(attempt: int, backoff: float, cap: Optional[float] = None) -> float:
    """Seconds to wait after a failed attempt (0-based), with up to 0.5s of jitter."""
    delay = backoff ** attempt + random.uniform(0, 0.5)
    return min(delay, cap) if cap else delay


def async_retry(
    max_retries: Optional[int] = None,
    backoff_factor: Optional[float] = None,
    exceptions: tuple = (Exception,)
):
    """
    Retry decorator for async functions.

    Args:
        max_retries: Maximum retry attempts (default from config)
        backoff_factor: Exponential backoff factor (default from config)
        exceptions: Exceptions to catch and retry
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            max_tries = config.MAX_RETRIES if max_retries is None else max_retries
            backoff = backoff_factor or config.RETRY_BACKOFF

            for attempt in range(max_tries + 1):
                try:
                    if attempt > 0:
                        logger.info(
                            f"Retry attempt {attempt}/{max_tries} for {func.__name__}"
                        )

                    return await func(*args, **kwargs)

                except exceptions as e:
                    if attempt == max_tries:
                        logger.error(
                            f"Max retries ({max_tries}) exhausted for {func.__name__}: {e}"
                        )
                        error = RetryExhaustedError(
                            f"Service {func.__name__} failed after {max_tries} retries: {str(e)}"
                        )
                        error.attempts = attempt + 1
                        raise error from e

                    delay = backoff_delay(attempt, backoff, config.RETRY_BACKOFF_MAX)
                    logger.warning(
                        f"Attempt {attempt + 1}/{max_tries + 1} failed for {func.__name__}. "
                        f"Retrying in {delay:.2f}s. Error: {e}"
                    )

                    await asyncio.sleep(delay)

        return wrapper
    return decorator
