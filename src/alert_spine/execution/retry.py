"""Retry strategies for provider and source calls.

Two policies use this module:

- remote fetch retries a page on a non-200 status or a transient error;
- sync retries create/update/delete only on transient transport errors
  (``ProviderTimeoutError``); everything else propagates on the first failure.

Both back off exponentially (``base_delay * multiplier ** attempt``).

Example:
    >>> ctx = RetryContext(ExponentialBackoff(max_retries=3, base_delay=0.5))
    >>> result = ctx.run(client.delete, 1234)
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable, TypeVar

T = TypeVar("T")


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before the next retry.

        Args:
            attempt: Zero-based retry number (0 = first retry)

        Returns:
            Delay in seconds before next attempt
        """
        ...

    @abstractmethod
    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Determine if another retry should be attempted.

        Args:
            attempt: Number of retries already made
            error: The exception that caused the failure
        """
        ...


@dataclass
class ExponentialBackoff(RetryStrategy):
    """Exponential backoff.

    Delay = min(base_delay * (multiplier ** attempt), max_delay)

    Attributes:
        max_retries: Retries after the first attempt (total calls = 1 + max_retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        multiplier: Exponential multiplier (default: 2)
        retryable_errors: Exception types that may be retried (None = all);
            subclasses match
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    retryable_errors: tuple[type[BaseException], ...] | None = None

    def next_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        return min(
            self.base_delay * (self.multiplier ** attempt),
            self.max_delay,
        )

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Check if retry should be attempted."""
        if attempt >= self.max_retries:
            return False
        if error is not None and self.retryable_errors is not None:
            return isinstance(error, self.retryable_errors)
        return True


@dataclass
class RetryContext:
    """Runs a callable under a retry strategy and records each failure.

    ``sleep`` is injectable so callers (and tests) can skip real waits.

    Example:
        >>> ctx = RetryContext(ExponentialBackoff(max_retries=3))
        >>> result = ctx.run(lambda: call_api())
        >>> ctx.attempts
        1
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, Exception, float], None] | None = None
    sleep: Callable[[float], None] = time.sleep
    attempts: int = field(default=0, init=False)
    last_error: Exception | None = field(default=None, init=False)
    errors: list[tuple[int, Exception, datetime]] = field(default_factory=list, init=False)

    def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute ``func`` with retry logic.

        Raises:
            The last exception once the strategy declines another retry.
        """
        while True:
            self.attempts += 1
            try:
                return func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.errors.append((self.attempts, e, utcnow()))
                retries_made = self.attempts - 1
                if not self.strategy.should_retry(retries_made, e):
                    raise
                delay = self.strategy.next_delay(retries_made)
                if self.on_retry:
                    self.on_retry(self.attempts, e, delay)
                self.sleep(delay)


__all__ = [
    "RetryStrategy",
    "ExponentialBackoff",
    "RetryContext",
]
