"""Retry executors wrapped around each model round.

A retry executor is any ``async (work) -> result`` callable, where
``work`` is a zero-argument coroutine function. :class:`RetryPolicy`
is the default; pass :func:`no_retry` to disable retries.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from openai import (
    APIConnectionError,
    APITimeoutError,
    InternalServerError,
    RateLimitError,
)
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryExecutor = Callable[[Callable[[], Awaitable[T]]], Awaitable[T]]

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
)


async def no_retry(work: Callable[[], Awaitable[T]]) -> T:
    return await work()


class RetryPolicy:
    """Exponential-backoff retry of transient transport failures.

    Args:
        max_attempts: Total attempts, including the first.
        multiplier: Backoff multiplier in seconds.
        max_wait: Upper bound on a single wait in seconds.
        retry_on: Exception types considered transient.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        multiplier: float = 1.0,
        max_wait: float = 10.0,
        retry_on: tuple[type[BaseException], ...] = TRANSIENT_ERRORS,
    ):
        self.max_attempts = max_attempts
        self.multiplier = multiplier
        self.max_wait = max_wait
        self.retry_on = retry_on

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.multiplier, max=self.max_wait),
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def __call__(self, work: Callable[[], Awaitable[T]]) -> T:
        async for attempt in self._retrying():
            with attempt:
                return await work()
