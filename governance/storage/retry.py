"""Retry policy for document storage calls.

Transient backend failures are retried with exponential backoff. Once
attempts are exhausted the last error propagates to the caller.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")

# Exceptions that are retriable (transient failures)
RETRIABLE_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
)

MAX_ATTEMPTS = 3


def with_retry(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
    """Decorator to retry storage operations with exponential backoff.

    Retries up to MAX_ATTEMPTS times (0.5s min, 5s max between tries).

    Args:
        func: Async storage function

    Returns:
        Wrapped function with retry logic
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        @retry(
            stop=stop_after_attempt(MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(RETRIABLE_EXCEPTIONS),
            before_sleep=before_sleep_log(logger, log_level=logging.INFO),
            reraise=True,
        )
        async def inner() -> T:
            return await func(*args, **kwargs)

        try:
            return await inner()
        except RETRIABLE_EXCEPTIONS as e:
            logger.error(
                "storage retry exhausted",
                function=func.__name__,
                attempts=MAX_ATTEMPTS,
                last_error=str(e),
            )
            raise

    return wrapper
