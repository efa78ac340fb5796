"""
Retry and backoff helpers.

These helpers are composed into clients rather than inherited. A request
attempt reports an explicit Outcome carrying a classified ErrorKind, and the
retry policy decides from the kind alone whether another attempt is worth it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from src.connector.enums import ErrorKind
from src.connector.exceptions import ConnectorError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one attempt: either a value or a classified error."""

    value: T | None = None
    error: ConnectorError | None = None
    kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        """True when the attempt produced a value."""
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, or raise the recorded error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        """Wrap a successful value."""
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, error: ConnectorError) -> "Outcome[T]":
        """Wrap a classified failure."""
        return cls(error=error, kind=kind)


class RetryPolicy:
    """
    Bounded retry with a fixed delay between attempts.

    Only NETWORK failures are retried. Any other kind surfaces on the first
    occurrence. The same operation is re-invoked verbatim on every attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 2.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Initialize the retry policy.

        Args:
            max_attempts: Total attempts, including the first one
            delay: Seconds to wait between attempts
            sleep: Awaitable sleep, replaceable in tests

        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay = delay
        self._sleep = sleep

    def should_retry(self, outcome: Outcome[T], attempt: int) -> bool:
        """Decide from the outcome kind whether to try again."""
        return outcome.kind == ErrorKind.NETWORK and attempt < self.max_attempts

    async def run(self, operation: Callable[[], Awaitable[Outcome[T]]]) -> T:
        """
        Run an operation until it succeeds or the budget is spent.

        Args:
            operation: Zero-argument coroutine factory producing an Outcome

        Returns:
            The value of the first successful attempt

        Raises:
            NetworkError: When every attempt failed at the transport level
            ConnectorError: The first non-retryable failure, unchanged

        """
        for attempt in range(1, self.max_attempts + 1):
            outcome = await operation()
            if outcome.ok:
                return outcome.unwrap()

            if not self.should_retry(outcome, attempt):
                break

            logger.warning(
                f"Attempt {attempt}/{self.max_attempts} failed: {outcome.error}; "
                f"retrying in {self.delay}s"
            )
            await self._sleep(self.delay)

        if outcome.kind == ErrorKind.NETWORK:
            logger.error(f"Giving up after {attempt} attempts: {outcome.error}")
        return outcome.unwrap()


class ExponentialBackoff:
    """Delay schedule of ``base ** attempt`` seconds, attempt starting at 1."""

    def __init__(self, base: float = 2.0, max_attempts: int = 5) -> None:
        self.base = base
        self.max_attempts = max_attempts

    def delay(self, attempt: int) -> float:
        """Seconds to wait before reconnect attempt number ``attempt``."""
        return float(self.base**attempt)

    def exhausted(self, attempts_made: int) -> bool:
        """True once no further attempt is allowed."""
        return attempts_made >= self.max_attempts
