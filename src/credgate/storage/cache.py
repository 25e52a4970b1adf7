"""TTL cache for repository lookups.

The cache uses an OrderedDict with TTL expiration and oldest-first eviction
when max_size is reached. Entries expire after the configured TTL
(default: 5 minutes). ``None`` is a valid cached value, which is how
repositories remember that a principal does not exist.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Callable, Generic, TypeVar

# Default TTL in seconds (5 minutes)
DEFAULT_TTL = 300.0

# Default max cache size (number of entries)
DEFAULT_MAX_SIZE = 100

V = TypeVar("V")

Clock = Callable[[], float]


class CacheEntry(Generic[V]):
    """Cache entry with TTL expiration.

    Attributes:
        value: Cached value; None records a negative lookup
        expires_at: Monotonic timestamp when the entry expires
    """

    __slots__ = ("value", "expires_at")

    def __init__(self, value: V | None, expires_at: float) -> None:
        self.value = value
        self.expires_at = expires_at

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class TTLCache(Generic[V]):
    """Thread-safe in-memory TTL cache with negative entries.

    Args:
        default_ttl: TTL in seconds; 0 disables caching
        max_size: Maximum number of entries (0 for unlimited)
        clock: Monotonic clock, injectable for tests

    Example:
        >>> cache: TTLCache[str] = TTLCache(default_ttl=60.0)
        >>> cache.set("ghost", None)
        >>> cache.get("ghost")
        (True, None)
        >>> cache.get("other")
        (False, None)
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Clock = time.monotonic,
    ) -> None:
        self._cache: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._lock = Lock()
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock

    def get(self, key: str) -> tuple[bool, V | None]:
        """Return ``(hit, value)``; expired entries count as misses and are dropped."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return False, None
            if entry.is_expired(self._clock()):
                del self._cache[key]
                return False, None
            return True, entry.value

    def set(self, key: str, value: V | None, ttl: float | None = None) -> None:
        if ttl is None:
            ttl = self._default_ttl
        if ttl <= 0:
            return
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            elif self._max_size > 0:
                while len(self._cache) >= self._max_size:
                    self._cache.popitem(last=False)
            self._cache[key] = CacheEntry(value, self._clock() + ttl)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear_all(self) -> None:
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def cleanup_expired(self) -> int:
        """Remove all expired entries from cache.

        Returns:
            Number of expired entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._cache.items() if entry.is_expired(now)]
            for key in expired:
                del self._cache[key]
            return len(expired)
