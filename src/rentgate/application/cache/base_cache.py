"""Base cache interface and in-memory implementation."""

import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K")  # Key type
V = TypeVar("V")  # Value type


@dataclass
class CacheEntry(Generic[V]):
    """Cache entry with value and metadata."""

    value: V
    created_at: float
    ttl_seconds: float

    # Hey future me, an entry is served up to and including created_at + ttl and never after.
    # `now` comes from the cache's clock (monotonic by default) so wall-clock jumps from NTP
    # don't suddenly expire or resurrect entries.
    def is_expired(self, now: float) -> bool:
        """Check if cache entry is expired."""
        return now > (self.created_at + self.ttl_seconds)


class BaseCache(ABC, Generic[K, V]):
    """Base cache interface for all cache implementations."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        """Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live in seconds (None = cache default)
        """
        pass

    @abstractmethod
    async def delete(self, key: K) -> bool:
        """Delete value from cache.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def clear_matching(self, pattern: str) -> int:
        """Delete every key matching a regular expression.

        Returns:
            Number of entries removed
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from cache."""
        pass

    @abstractmethod
    async def exists(self, key: K) -> bool:
        """Check if key exists and is not expired."""
        pass


class InMemoryCache(BaseCache[str, V]):
    """Bounded in-memory TTL cache with oldest-first eviction.

    Process-local: restarts lose everything and nothing is shared between
    workers. A multi-instance deployment needs a shared store behind the same
    BaseCache interface.
    """

    # Listen up future me, there is NO lock here: none of these coroutines await anything,
    # so on a single event loop each call runs start to finish and a cache hit never
    # suspends. Add an await inside one of them (e.g. talking to Redis) and you need a lock!
    def __init__(
        self,
        max_size: int = 100,
        default_ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize in-memory cache.

        Args:
            max_size: Maximum number of entries before the oldest is evicted
            default_ttl_seconds: TTL used when set() is called without one
            clock: Time source (override in tests)
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        # dict keeps insertion order, so the first key is always the oldest insert
        self._cache: dict[str, CacheEntry[V]] = {}
        self._hits = 0
        self._misses = 0

    # Yo, get() evicts lazily: an expired entry is deleted on read and reported as absent.
    # Returns None for both "never cached" and "expired" - callers can't and shouldn't care.
    async def get(self, key: str) -> V | None:
        """Get value from cache."""
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            logger.debug("Cache miss: %s", key)
            return None

        if entry.is_expired(self._clock()):
            del self._cache[key]
            self._misses += 1
            logger.debug("Cache expired: %s", key)
            return None

        self._hits += 1
        logger.debug("Cache hit: %s", key)
        return entry.value

    # Hey, overwriting an existing key re-inserts it as the NEWEST entry and never evicts
    # anything. A brand-new key at capacity evicts exactly one entry: the oldest insert.
    async def set(self, key: str, value: V, ttl_seconds: float | None = None) -> None:
        """Set value in cache."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds

        if key in self._cache:
            del self._cache[key]
        elif len(self._cache) >= self.max_size:
            self._evict_oldest()

        self._cache[key] = CacheEntry(
            value=value,
            created_at=self._clock(),
            ttl_seconds=ttl,
        )
        logger.debug("Cache set: %s (ttl=%ss)", key, ttl)

    async def delete(self, key: str) -> bool:
        """Delete value from cache."""
        if key in self._cache:
            del self._cache[key]
            logger.debug("Cache deleted: %s", key)
            return True
        return False

    async def clear_matching(self, pattern: str) -> int:
        """Delete every key where the regex pattern matches anywhere in the key."""
        regex = re.compile(pattern)
        matched = [key for key in self._cache if regex.search(key)]
        for key in matched:
            del self._cache[key]
        logger.debug("Cleared %d cache entries matching pattern: %s", len(matched), pattern)
        return len(matched)

    async def clear(self) -> None:
        """Clear all entries from cache."""
        self._cache.clear()
        logger.debug("Cache cleared")

    async def exists(self, key: str) -> bool:
        """Check if key exists in cache (same lazy-expiry side effect as get)."""
        entry = self._cache.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._cache[key]
            return False
        return True

    # Yo, cleanup_expired is the periodic sweep for memory hygiene. Correctness never
    # depends on it - get() already refuses expired entries. Build the key list first,
    # deleting while iterating a dict blows up.
    async def cleanup_expired(self) -> int:
        """Remove expired entries from cache.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired_keys = [key for key, entry in self._cache.items() if entry.is_expired(now)]
        for key in expired_keys:
            del self._cache[key]
        if expired_keys:
            logger.debug("Cleaned up %d expired cache entries", len(expired_keys))
        return len(expired_keys)

    def _evict_oldest(self) -> None:
        oldest_key = next(iter(self._cache), None)
        if oldest_key is not None:
            del self._cache[oldest_key]
            logger.debug("Evicted oldest cache entry: %s", oldest_key)

    def __len__(self) -> int:
        return len(self._cache)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        now = self._clock()
        total_entries = len(self._cache)
        expired_entries = sum(1 for entry in self._cache.values() if entry.is_expired(now))
        lookups = self._hits + self._misses

        return {
            "total_entries": total_entries,
            "active_entries": total_entries - expired_entries,
            "expired_entries": expired_entries,
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
        }
