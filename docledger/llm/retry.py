"""Retry with exponential backoff for calls to unreliable external services."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from docledger.config.models import RetrySettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, float, BaseException], None]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    # Fraction of the exponential delay added as random jitter
    jitter: float = 0.1

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        return cls(
            max_retries=settings.max_retries,
            initial_delay=settings.initial_delay,
            max_delay=settings.max_delay,
            multiplier=settings.multiplier,
        )


def should_retry(error: BaseException) -> bool:
    """Rate limits always retry; anything else only if it says it is retryable."""
    if getattr(error, "rate_limited", False):
        return True
    return bool(getattr(error, "retryable", False))


class RetryExecutor:
    """Runs an async operation up to ``max_retries + 1`` times.

    Non-retryable errors propagate on first occurrence. When retries run out
    the last error is re-raised as is.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rand = rand

    def compute_delay(self, attempt: int, error: BaseException) -> float:
        """Seconds to wait after the failed attempt number *attempt* (0-based)."""
        policy = self.policy
        retry_after = getattr(error, "retry_after", None)
        if getattr(error, "rate_limited", False) and retry_after is not None:
            return min(float(retry_after), policy.max_delay)

        exponential = policy.initial_delay * policy.multiplier**attempt
        jitter = self._rand() * policy.jitter * exponential
        return min(exponential + jitter, policy.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: RetryCallback | None = None,
    ) -> T:
        """Await *operation()*, retrying per the policy.

        *on_retry* is called as ``on_retry(retry_number, delay, error)``
        before each backoff sleep.
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                if not should_retry(exc) or attempt >= self.policy.max_retries:
                    raise
                delay = self.compute_delay(attempt, exc)
                attempt += 1
                logger.info(
                    "Attempt %d/%d failed (%s), retrying in %.2fs",
                    attempt,
                    self.policy.max_retries + 1,
                    exc,
                    delay,
                )
                if on_retry is not None:
                    on_retry(attempt, delay, exc)
                await self._sleep(delay)
