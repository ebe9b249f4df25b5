"""Retry with exponential backoff for outbound calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with plain exponential backoff (no jitter).

    The delay before attempt ``n + 1`` is ``initial_delay_ms * 2 ** (n - 1)``.
    """

    max_attempts: int = 3
    initial_delay_ms: int = 1000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay_ms < 0:
            raise ValueError(f"initial_delay_ms must be >= 0, got {self.initial_delay_ms}")

    def delay_for(self, attempt: int) -> float:
        """Return the sleep (seconds) after a failed ``attempt`` (1-based)."""
        return self.initial_delay_ms * (2 ** (attempt - 1)) / 1000

    async def run(self, operation: Operation[T], description: str = "operation") -> T:
        """Run ``operation`` under this policy.

        Args:
            operation: Zero-argument coroutine function
            description: Label used in log lines

        Returns:
            Whatever the first successful attempt returns

        Raises:
            Exception: The error of the last attempt when all attempts fail
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                if attempt >= self.max_attempts:
                    logger.warning(
                        f"{description} failed after {self.max_attempts} attempt(s): {exc}"
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.debug(
                    f"Retry {attempt}/{self.max_attempts} for {description} failed: "
                    f"{exc}; next attempt in {delay:.3f}s"
                )
                await asyncio.sleep(delay)

        raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")


async def retry_with_backoff(
    operation: Operation[T],
    max_attempts: int = 3,
    initial_delay_ms: int = 1000,
    description: str = "operation",
) -> T:
    """Invoke ``operation`` up to ``max_attempts`` times with exponential backoff."""
    policy = RetryPolicy(max_attempts=max_attempts, initial_delay_ms=initial_delay_ms)
    return await policy.run(operation, description=description)
