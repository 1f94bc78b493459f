"""Retry with exponential backoff for source-host calls."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import RetryConfig
from ..errors import RateLimitedError, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Bounded exponential backoff.

    Only transient failures are retried. A rate-limit rejection is retried once
    its reset is close enough to wait for; every other error propagates on the
    first attempt.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize the policy.

        Args:
            config: Attempt count and delay bounds
            sleep: Async sleep function (injectable for tests)
        """
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after a failed attempt (0-based)."""
        delay = self.config.initial_delay * (self.config.factor**attempt)
        return min(delay, self.config.max_delay)

    def _wait_for(self, error: Exception, attempt: int) -> Optional[float]:
        if isinstance(error, RateLimitedError):
            wait = max(error.seconds_until_reset(), 0.0)
            if wait < self.config.rate_limit_wait_ceiling:
                return wait
            return None
        if isinstance(error, TransientError):
            return self.delay_for(attempt)
        return None

    async def run(self, operation: Callable[[], Awaitable[T]], label: str = "request") -> T:
        """Run an operation, retrying transient failures.

        Args:
            operation: Zero-argument coroutine function to invoke per attempt
            label: Description used in log messages

        Returns:
            The operation's result

        Raises:
            Exception: The first non-retryable error, or the last error once
                attempts are exhausted
        """
        attempts = max(self.config.max_attempts, 1)
        for attempt in range(attempts):
            try:
                return await operation()
            except Exception as e:
                wait = self._wait_for(e, attempt)
                if wait is None or attempt == attempts - 1:
                    raise
                logger.warning(
                    f"{label} failed (attempt {attempt + 1}/{attempts}): {e}; "
                    f"retrying in {wait:.1f}s"
                )
                await self._sleep(wait)

        raise RuntimeError("unreachable")
