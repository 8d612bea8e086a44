"""Parameterised retry with backoff for ledger and relay calls."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import trio

from .config import (
    LEAF_INDEX_ATTEMPTS,
    LEAF_INDEX_DELAY_SECONDS,
    STALE_SEQUENCE_ATTEMPTS,
    STALE_SEQUENCE_DELAY_SECONDS,
    SUBMISSION_ATTEMPTS,
    SUBMISSION_BASE_DELAY_SECONDS,
    SUBMISSION_MAX_DELAY_SECONDS,
)
from .exceptions import RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    base_delay: float
    multiplier: float = 1.0
    max_delay: Optional[float] = None
    jitter: float = 0.0

    def validate(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if not 0 <= self.jitter <= 1:
            raise ValueError("jitter must be in [0, 1]")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based, after a failure)."""
        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        if self.jitter:
            delay *= 1 - self.jitter * random.random()
        return delay

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        retry_on: Tuple[Type[BaseException], ...],
        label: str = "operation",
    ) -> T:
        """
        Await ``operation`` until it succeeds or attempts run out.

        Only exceptions in ``retry_on`` are retried; anything else propagates
        immediately.

        Raises:
            RetryExhausted: After ``max_attempts`` retryable failures
        """
        self.validate()
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except retry_on as exc:
                last_error = exc
                if attempt == self.max_attempts:
                    break
                delay = self.delay_for(attempt)
                logger.info(
                    "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                    label,
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await trio.sleep(delay)
        assert last_error is not None
        raise RetryExhausted(label, self.max_attempts, last_error)


LEAF_INDEX_RETRY = RetryPolicy(
    max_attempts=LEAF_INDEX_ATTEMPTS,
    base_delay=LEAF_INDEX_DELAY_SECONDS,
)

STALE_SEQUENCE_RETRY = RetryPolicy(
    max_attempts=STALE_SEQUENCE_ATTEMPTS,
    base_delay=STALE_SEQUENCE_DELAY_SECONDS,
)

SUBMISSION_RETRY = RetryPolicy(
    max_attempts=SUBMISSION_ATTEMPTS,
    base_delay=SUBMISSION_BASE_DELAY_SECONDS,
    multiplier=2.0,
    max_delay=SUBMISSION_MAX_DELAY_SECONDS,
    jitter=0.25,
)
