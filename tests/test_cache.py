"""
Tests for the response cache.
"""

import threading

import pytest

from tone_slyder.core.cache import CacheEntry, ResponseCache


class TestCacheEntry:
    """Test entry expiry boundaries."""

    def test_expired_at_exact_deadline(self):
        entry = CacheEntry(key="k", value=1, expires_at=100.0)

        assert not entry.is_expired(99.9)
        assert entry.is_expired(100.0)


class TestResponseCache:
    """Test TTL cache behavior with a controlled clock."""

    def test_set_and_get(self, clock):
        cache = ResponseCache(default_ttl=600, clock=clock)
        cache.set("k", "value")

        assert cache.get("k") == "value"
        assert "k" in cache
        assert len(cache) == 1

    def test_missing_key(self, clock):
        cache = ResponseCache(clock=clock)

        assert cache.get("missing") is None
        assert "missing" not in cache

    def test_entry_expires_after_ttl(self, clock):
        """Test reads at or past the deadline miss and evict."""
        cache = ResponseCache(default_ttl=600, clock=clock)
        cache.set("k", "value")

        clock.advance(599)
        assert cache.get("k") == "value"

        clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_custom_ttl(self, clock):
        cache = ResponseCache(default_ttl=600, clock=clock)
        cache.set("short", "v", ttl=10)
        cache.set("long", "v")

        clock.advance(10)

        assert cache.get("short") is None
        assert cache.get("long") == "v"

    def test_later_write_wins(self, clock):
        """Test overwriting a key replaces value and expiry."""
        cache = ResponseCache(default_ttl=100, clock=clock)
        cache.set("k", "first")
        clock.advance(90)
        cache.set("k", "second")
        clock.advance(50)

        assert cache.get("k") == "second"

    def test_sweep_removes_only_expired(self, clock):
        cache = ResponseCache(default_ttl=600, clock=clock)
        cache.set("old", 1, ttl=10)
        cache.set("new", 2)
        clock.advance(20)

        assert cache.sweep() == 1
        assert len(cache) == 1
        assert cache.get("new") == 2

    def test_periodic_sweep_on_access(self, clock):
        """Test expired entries are removed once the sweep interval elapses."""
        cache = ResponseCache(default_ttl=600, sweep_interval=300, clock=clock)
        cache.set("a", 1, ttl=10)
        cache.set("b", 2, ttl=10)
        cache.set("c", 3)

        clock.advance(100)
        cache.get("c")
        assert len(cache) == 3

        clock.advance(200)
        cache.get("c")
        assert len(cache) == 1

    def test_delete_and_clear(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.delete("a")
        cache.delete("never-set")
        assert cache.get("a") is None

        cache.clear()
        assert len(cache) == 0

    def test_invalid_ttl_rejected(self, clock):
        cache = ResponseCache(clock=clock)

        with pytest.raises(ValueError, match="ttl must be > 0"):
            cache.set("k", "v", ttl=0)

    def test_invalid_construction(self):
        with pytest.raises(ValueError, match="default_ttl"):
            ResponseCache(default_ttl=0)
        with pytest.raises(ValueError, match="sweep_interval"):
            ResponseCache(sweep_interval=-1)

    def test_concurrent_writers(self):
        """Test parallel writers never lose entries."""
        cache = ResponseCache()

        def writer(start):
            for i in range(start, start + 100):
                cache.set(f"key-{i}", i)

        threads = [threading.Thread(target=writer, args=(n * 100,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(cache) == 800
        assert cache.get("key-799") == 799
