"""Time-bounded response cache keyed by logical resource identity."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with the time it was stored."""

    value: Any
    stored_at: float


class ResponseCache:
    """In-process TTL cache.

    Keys are logical resource identities such as ``repo:{owner}/{name}`` or
    ``file:{owner}/{name}:{path}:{ref}``. Entries past their TTL are evicted on
    read. All access happens on one event loop, so no locking is needed.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Optional[Callable[[], float]] = None):
        """Initialize the cache.

        Args:
            ttl_seconds: Lifetime of each entry
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[key]
            self.misses += 1
            logger.debug(f"Cache entry expired: {key}")
            return None

        self.hits += 1
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the cache.

        Returns:
            Dictionary with entry count and hit rate
        """
        lookups = self.hits + self.misses
        return {
            "entries": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / lookups * 100, 2) if lookups else 0.0,
        }
