"""Wall-clock budget shared by the pipeline stages."""

import time
from typing import Callable, Optional


class Deadline:
    """A hard cutoff measured on a monotonic clock."""

    def __init__(self, seconds: float, clock: Optional[Callable[[], float]] = None):
        """Start the countdown.

        Args:
            seconds: Total budget
            clock: Monotonic time source (injectable for tests)
        """
        self.seconds = seconds
        self._clock = clock or time.monotonic
        self._started = self._clock()

    def elapsed(self) -> float:
        return self._clock() - self._started

    def remaining(self) -> float:
        return max(self.seconds - self.elapsed(), 0.0)

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0
