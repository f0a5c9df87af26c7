"""
Owned cache for on-demand news reads.

Instances are created by whoever serves the reads and passed in
explicitly; there is no module-level cache.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from cachetools import TTLCache

V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value and the time it was fetched."""

    value: V
    fetched_at: float

    def age(self, now: float | None = None) -> float:
        """Seconds since the value was fetched."""
        return (time.time() if now is None else now) - self.fetched_at


class NewsCache(Generic[V]):
    """
    Key -> value cache with a freshness timestamp per entry.

    Expiry is handled by `cachetools.TTLCache`; the fetch timestamp is
    kept alongside so callers can report how stale a value is.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 300,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: TTLCache[str, CacheEntry[V]] = TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=clock
        )
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> CacheEntry[V] | None:
        """Return the fresh entry for `key`, or None."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
        else:
            self.hits += 1
        return entry

    def put(self, key: str, value: V) -> CacheEntry[V]:
        entry = CacheEntry(value=value, fetched_at=time.time())
        self._entries[key] = entry
        return entry

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
