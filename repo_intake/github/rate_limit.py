"""Rate-limit state and the gate consulted before every source-host call."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from ..errors import RateLimitedError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitState:
    """Snapshot of the host's core rate-limit counters."""

    limit: int
    remaining: int
    reset_at: datetime
    used: int = 0
    buffer_percentage: float = 0.1
    floor: int = 10

    @property
    def buffer(self) -> int:
        return math.floor(self.limit * self.buffer_percentage)

    @property
    def can_proceed(self) -> bool:
        return self.remaining > self.buffer and self.remaining >= self.floor

    @classmethod
    def from_payload(
        cls, payload: dict, buffer_percentage: float = 0.1, floor: int = 10
    ) -> "RateLimitState":
        """Build state from a ``GET /rate_limit`` response body.

        Args:
            payload: Decoded JSON body
            buffer_percentage: Fraction of the limit held back as a safety buffer
            floor: Absolute minimum of remaining calls

        Returns:
            Parsed rate-limit state
        """
        core = payload.get("resources", {}).get("core") or payload.get("rate", {})
        return cls(
            limit=int(core.get("limit", 0)),
            remaining=int(core.get("remaining", 0)),
            reset_at=datetime.fromtimestamp(int(core.get("reset", 0)), tz=timezone.utc),
            used=int(core.get("used", 0)),
            buffer_percentage=buffer_percentage,
            floor=floor,
        )

    def to_dict(self) -> dict:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "used": self.used,
            "reset_at": self.reset_at.isoformat(),
            "buffer": self.buffer,
            "can_proceed": self.can_proceed,
        }


class RateLimitGate:
    """Refreshes rate-limit state and fails fast when the buffer is breached."""

    def __init__(self, fetch_state: Callable[[], Awaitable[RateLimitState]]):
        """Initialize the gate.

        Args:
            fetch_state: Coroutine function performing the status call
        """
        self._fetch_state = fetch_state
        self.last_state: Optional[RateLimitState] = None

    async def check(self) -> None:
        """Refresh state and raise if the call must not proceed.

        Raises:
            RateLimitedError: If remaining calls are within the safety buffer
        """
        try:
            state = await self._fetch_state()
        except RateLimitedError:
            raise
        except Exception as e:
            # Status check failures must not block the actual call
            logger.warning(f"Rate limit check failed, proceeding anyway: {e}")
            return

        self.last_state = state
        if not state.can_proceed:
            logger.warning(
                f"Rate limit buffer reached ({state.remaining}/{state.limit} remaining), "
                f"resets at {state.reset_at.isoformat()}"
            )
            raise RateLimitedError(
                f"Rate limit nearly exceeded. Resets at {state.reset_at.isoformat()}",
                state.reset_at,
            )
