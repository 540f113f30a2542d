"""Retry policy for calls to the ledger API."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog

from config import RetrySettings
from ledger_report.services.errors import (
    DeserializationError,
    FetchExhaustedError,
    TransportError,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Attempts, capped exponential backoff and an overall deadline.

    ``max_attempts=None`` and ``deadline=None`` retry forever. Only errors in
    ``retry_on`` are retried; anything else propagates on the first attempt.
    """

    max_attempts: int | None = 8
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    deadline: float | None = 600.0
    retry_on: tuple[type[Exception], ...] = (TransportError, DeserializationError)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    @classmethod
    def unbounded(cls, **kwargs: Any) -> "RetryPolicy":
        """Retry forever with no delay."""
        return cls(max_attempts=None, base_delay=0.0, max_delay=0.0, deadline=None, **kwargs)

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        if settings.unbounded:
            return cls.unbounded()
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay,
            multiplier=settings.multiplier,
            max_delay=settings.max_delay,
            deadline=settings.deadline,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-based)."""
        return min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)

    def call(self, func: Callable[..., T], *args: Any, description: str = "", **kwargs: Any) -> T:
        started = self.clock()
        attempt = 0
        while True:
            attempt += 1
            try:
                return func(*args, **kwargs)
            except self.retry_on as e:
                last_error: Exception = e

            if self.max_attempts is not None and attempt >= self.max_attempts:
                raise FetchExhaustedError(
                    f"{description or 'call'} failed after {attempt} attempts: {last_error}"
                ) from last_error

            delay = self.delay_for(attempt)
            if self.deadline is not None and self.clock() + delay - started > self.deadline:
                raise FetchExhaustedError(
                    f"{description or 'call'} exceeded {self.deadline}s deadline "
                    f"after {attempt} attempts: {last_error}"
                ) from last_error

            logger.warning(
                "Ledger call failed, retrying",
                call=description,
                attempt=attempt,
                max_attempts=self.max_attempts,
                delay=delay,
                error=str(last_error)[:100],
            )
            if delay > 0:
                self.sleep(delay)
