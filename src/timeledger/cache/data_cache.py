"""TTL cache with prefix invalidation.

Keys follow the ``"<entity>:<qualifier>"`` convention so that a single
``invalidate_pattern("<entity>:")`` evicts every cached view of one entity
kind. Expired entries are treated exactly like absent ones.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..utils.logging_config import get_logger

logger = get_logger("cache")

DEFAULT_TTL_SECONDS = 5.0


@dataclass
class CacheEntry:
    """A cached value and the monotonic time at which it stops being visible."""

    value: Any
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class DataCache:
    """Key -> value store with per-entry expiry."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``, replacing any existing entry."""
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or None on a miss."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if not entry.is_live(self._clock()):
            del self._entries[key]
            self.misses += 1
            return None

        if entry.value is None:
            self.misses += 1
            return None

        self.hits += 1
        return entry.value

    def invalidate(self, key: str) -> None:
        """Remove exactly ``key``."""
        self._entries.pop(key, None)

    def invalidate_pattern(self, prefix: str) -> None:
        """Remove every key starting with the literal ``prefix``."""
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cache entries with prefix {prefix!r}")

    def invalidate_all(self) -> None:
        """Drop every entry."""
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"Invalidated all {count} cache entries")

    def purge_expired(self) -> int:
        """Physically drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_live(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def keys(self) -> List[str]:
        """Keys of live entries."""
        self.purge_expired()
        return list(self._entries)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of every live key/value pair."""
        self.purge_expired()
        return {key: entry.value for key, entry in self._entries.items()}

    def __len__(self) -> int:
        self.purge_expired()
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.value is not None and entry.is_live(self._clock())

    def get_stats(self) -> dict:
        """Get hit/miss counters and current size."""
        return {
            "size": len(self),
            "hits": self.hits,
            "misses": self.misses,
            "default_ttl": self.default_ttl,
        }
