"""Tests for TTLCache."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from credgate.storage.cache import DEFAULT_MAX_SIZE, DEFAULT_TTL, TTLCache

if TYPE_CHECKING:
    from conftest import FakeClock


class TestTTLCache:
    """Tests for TTL expiry, negative entries and eviction."""

    def test_defaults(self) -> None:
        cache: TTLCache[str] = TTLCache()

        assert cache.default_ttl == DEFAULT_TTL == 300.0
        assert cache.max_size == DEFAULT_MAX_SIZE == 100

    def test_miss_then_hit(self, clock: FakeClock) -> None:
        cache: TTLCache[str] = TTLCache(60.0, clock=clock)

        assert cache.get("demo") == (False, None)
        cache.set("demo", "value")
        assert cache.get("demo") == (True, "value")

    def test_negative_entry_is_a_hit(self, clock: FakeClock) -> None:
        cache: TTLCache[str] = TTLCache(60.0, clock=clock)

        cache.set("ghost", None)

        assert cache.get("ghost") == (True, None)

    def test_entry_expires_after_ttl(self, clock: FakeClock) -> None:
        cache: TTLCache[str] = TTLCache(60.0, clock=clock)
        cache.set("demo", "value")

        clock.advance(59)
        assert cache.get("demo") == (True, "value")

        clock.advance(1)
        assert cache.get("demo") == (False, None)
        assert cache.size() == 0

    def test_per_entry_ttl(self, clock: FakeClock) -> None:
        cache: TTLCache[str] = TTLCache(60.0, clock=clock)
        cache.set("short", "value", ttl=5.0)

        clock.advance(5.0)

        assert cache.get("short") == (False, None)

    def test_zero_ttl_disables_caching(self, clock: FakeClock) -> None:
        cache: TTLCache[str] = TTLCache(0.0, clock=clock)

        cache.set("demo", "value")

        assert cache.size() == 0
        assert cache.get("demo") == (False, None)

    def test_evicts_oldest_when_full(self, clock: FakeClock) -> None:
        cache: TTLCache[int] = TTLCache(60.0, max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert cache.get("a") == (False, None)
        assert cache.get("b") == (True, 2)
        assert cache.get("c") == (True, 3)

    def test_overwrite_does_not_evict(self, clock: FakeClock) -> None:
        cache: TTLCache[int] = TTLCache(60.0, max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert cache.size() == 2
        assert cache.get("a") == (True, 10)
        assert cache.get("b") == (True, 2)

    def test_invalidate_and_clear(self, clock: FakeClock) -> None:
        cache: TTLCache[int] = TTLCache(60.0, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        cache.invalidate("missing")
        assert cache.get("a") == (False, None)
        assert cache.size() == 1

        cache.clear_all()
        assert cache.size() == 0

    def test_cleanup_expired(self, clock: FakeClock) -> None:
        cache: TTLCache[int] = TTLCache(60.0, clock=clock)
        cache.set("old", 1, ttl=10.0)
        cache.set("new", 2)

        clock.advance(30.0)

        assert cache.cleanup_expired() == 1
        assert cache.size() == 1

    def test_concurrent_writers(self) -> None:
        cache: TTLCache[int] = TTLCache(60.0, max_size=50)

        def writer(offset: int) -> None:
            for i in range(100):
                cache.set(f"key-{offset}-{i}", i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cache.size() == 50
