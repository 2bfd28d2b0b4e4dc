"""In-memory TTL cache with lazy expiry and a periodic sweeper.

Each uvicorn worker has its own cache instance. Entries are evicted when an
expired key is read, and `sweep_forever` removes expired entries that are
never read again so memory stays bounded.

Entries are frozen and replaced with a single dict assignment, so an
interleaved coroutine never sees a half-written entry.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SWEEP_INTERVAL_SECONDS = 120


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    expires_at: float


@dataclass(frozen=True)
class CacheStats:
    key_count: int
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def as_dict(self) -> dict:
        return {
            "keys": self.key_count,
            "hits": self.hits,
            "misses": self.misses,
            "hitRate": round(self.hit_rate, 4),
        }


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._store: dict[str, CacheEntry] = {}
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is not None:
            if self._clock() < entry.expires_at:
                self.hits += 1
                return entry.value
            del self._store[key]
        self.misses += 1
        return None

    def peek(self, key: str) -> Any | None:
        """Like get, but leaves hit/miss counters and expired entries alone."""
        entry = self._store.get(key)
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        now = self._clock()
        self._store[key] = CacheEntry(value=value, stored_at=now, expires_at=now + ttl_seconds)

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def delete_where(self, predicate: Callable[[str], bool]) -> int:
        """Delete every key matching predicate. Returns the number removed."""
        doomed = [key for key in self._store if predicate(key)]
        for key in doomed:
            del self._store[key]
        return len(doomed)

    def clear(self, reset_stats: bool = False) -> None:
        """Drop all entries. Hit/miss counters survive unless reset_stats is set."""
        self._store.clear()
        if reset_stats:
            self.reset_stats()

    def reset_stats(self) -> None:
        self.hits = 0
        self.misses = 0

    def sweep(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry.expires_at <= now]
        for key in expired:
            del self._store[key]
        return len(expired)

    def keys(self) -> list[str]:
        now = self._clock()
        return [key for key, entry in self._store.items() if entry.expires_at > now]

    def stats(self) -> CacheStats:
        return CacheStats(key_count=len(self._store), hits=self.hits, misses=self.misses)

    def __contains__(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and self._clock() < entry.expires_at

    def __len__(self) -> int:
        return len(self._store)


async def sweep_forever(
    caches: Iterable[TTLCache],
    interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
) -> None:
    """Sweep a group of caches every `interval` seconds until cancelled."""
    caches = list(caches)
    while True:
        await asyncio.sleep(interval)
        removed = sum(cache.sweep() for cache in caches)
        if removed:
            logger.debug("Cache sweep removed %d expired entries", removed)
