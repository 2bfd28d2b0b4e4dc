"""Cache-or-fetch orchestration shared by the upstream clients.

There is no single-flight: two concurrent misses on the same key both hit
the upstream and the later result wins. The upstreams are idempotent GETs.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from services.cache import CacheStats, TTLCache
from services.retry import Operation, RetryExecutor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ttl:
    seconds: int

    def __post_init__(self):
        if self.seconds <= 0:
            raise ValueError("Ttl must be positive, use NEVER_CACHE to bypass the cache")


class NeverCache:
    """Policy branch for data that must always come from the upstream."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NEVER_CACHE"


NEVER_CACHE = NeverCache()

CachePolicy = Ttl | NeverCache

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR


def as_cache_policy(ttl: CachePolicy | int) -> CachePolicy:
    """Normalize a raw TTL in seconds; 0 means never cache."""
    if isinstance(ttl, (Ttl, NeverCache)):
        return ttl
    if ttl == 0:
        return NEVER_CACHE
    return Ttl(ttl)


def coord_key(lat: float, lon: float) -> str:
    """Coordinates rounded to 4 decimals, so equal requests share a key."""
    return f"{lat:.4f},{lon:.4f}"


def _trimmed(value: float) -> str:
    return f"{value:.4f}".rstrip("0").rstrip(".")


def request_coord(lat: float, lon: float) -> str:
    """Coordinates for upstream URLs: 4 decimals, no trailing zeros.

    weather.gov redirects `-96.5740` to `-96.574`, so the canonical form is
    requested directly.
    """
    return f"{_trimmed(lat)},{_trimmed(lon)}"


class CachedClient:
    """Composes a TTLCache and a RetryExecutor for one upstream provider."""

    def __init__(self, name: str, executor: RetryExecutor, cache: TTLCache | None = None):
        self.name = name
        self.executor = executor
        self.cache = cache if cache is not None else TTLCache()

    async def get_or_fetch(self, key: str, ttl: CachePolicy | int, operation: Operation) -> Any:
        policy = as_cache_policy(ttl)
        if isinstance(policy, NeverCache):
            return await self.executor.execute(operation)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        # Failures propagate before set(), so an error is never cached
        value = await self.executor.execute(operation)
        self.cache.set(key, value, policy.seconds)
        return value

    def invalidate(self, key: str) -> bool:
        return self.cache.delete(key)

    def invalidate_where(self, predicate: Callable[[str], bool]) -> int:
        return self.cache.delete_where(predicate)

    def clear(self) -> None:
        self.cache.clear()
        logger.info("%s cache cleared", self.name)

    def stats(self) -> CacheStats:
        return self.cache.stats()
