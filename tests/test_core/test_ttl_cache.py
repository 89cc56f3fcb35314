"""Tests for the TTL cache."""

from datetime import datetime, timezone

import pytest

from clinic_calendar.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(namespace="test", max_size=3, default_ttl=60, clock=clock)


class TestExpiry:
    def test_live_entry_returned(self, cache, clock):
        cache.set("k", [1, 2])
        clock.advance(59)
        assert cache.get("k") == [1, 2]
        assert cache.has("k")

    def test_entry_expires_at_ttl(self, cache, clock):
        cache.set("k", "v")
        clock.advance(60)
        assert not cache.has("k")
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, cache, clock):
        cache.set("short", "v", ttl=5)
        cache.set("long", "v")
        clock.advance(10)
        assert cache.get("short") is None
        assert cache.get("long") == "v"

    def test_evict_expired(self, cache, clock):
        cache.set("a", 1, ttl=5)
        cache.set("b", 2, ttl=5)
        cache.set("c", 3)
        clock.advance(5)
        assert cache.evict_expired() == 2
        assert len(cache) == 1

    def test_reset_ttl_on_set(self, cache, clock):
        cache.set("k", "old")
        clock.advance(50)
        cache.set("k", "new")
        clock.advance(50)
        assert cache.get("k") == "new"


class TestEviction:
    def test_least_recently_used_evicted(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.get("a")
        cache.set("d", 4)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("d") == 4
        assert len(cache) == 3

    def test_overwrite_at_capacity_keeps_others(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.set("a", 10)

        assert [cache.get(k) for k in ("a", "b", "c")] == [10, 2, 3]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            TTLCache(max_size=0)


class TestRemoval:
    def test_delete(self, cache):
        cache.set("k", 1)
        assert cache.delete("k")
        assert not cache.delete("k")

    def test_delete_prefix(self, cache):
        cache.set("clin-1:a", 1)
        cache.set("clin-1:b", 2)
        cache.set("clin-2:a", 3)

        assert cache.delete_prefix("clin-1:") == 2
        assert cache.get("clin-2:a") == 3

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.clear()
        assert len(cache) == 0


class TestStats:
    def test_hits_and_misses(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("a")
        cache.get("missing")

        stats = cache.stats()
        assert (stats.namespace, stats.size, stats.hits, stats.misses) == ("test", 1, 2, 1)
        assert stats.hit_rate == pytest.approx(2 / 3)

    def test_empty_hit_rate(self, cache):
        assert cache.stats().hit_rate == 0.0


class TestMakeKey:
    def test_joins_parts(self):
        start = datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)
        assert TTLCache.make_key("clin-1", start, 3) == "clin-1:2024-01-08T09:00:00+00:00:3"

    def test_mappings_are_order_independent(self):
        assert TTLCache.make_key({"b": 1, "a": 2}) == TTLCache.make_key({"a": 2, "b": 1})
