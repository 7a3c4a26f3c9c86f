"""
Tests for CacheStore.
"""

from datetime import timedelta

from mindnote.services.cache import CacheStore
from tests.conftest import FakeClock


def make_cache(clock: FakeClock, **kwargs) -> CacheStore:
    return CacheStore(default_ttl=timedelta(seconds=1), clock=clock, **kwargs)


class TestKeys:
    def test_deterministic(self):
        a = CacheStore.generate_key("GET", "https://api.test/notes", {"b": 1, "a": 2})
        b = CacheStore.generate_key("get", "https://api.test/notes", {"a": 2, "b": 1})
        assert a == b

    def test_method_and_body_distinguish(self):
        url = "https://api.test/notes"
        keys = {
            CacheStore.generate_key("GET", url),
            CacheStore.generate_key("POST", url),
            CacheStore.generate_key("GET", url, {"q": "x"}),
            CacheStore.generate_key("GET", url, {"q": "y"}),
        }
        assert len(keys) == 4

    def test_missing_method_is_get(self):
        assert CacheStore.generate_key(None, "/a") == CacheStore.generate_key("GET", "/a")

    def test_long_keys_are_hashed(self):
        url = "https://api.test/" + "x" * 500
        key = CacheStore.generate_key("GET", url)
        assert len(key) < 100
        assert key != CacheStore.generate_key("GET", url + "y")


class TestExpiry:
    def test_hit_within_ttl(self, clock):
        cache = make_cache(clock)
        cache.set("k", {"v": 1})
        clock.advance(milliseconds=1000)
        assert cache.get("k") == {"v": 1}

    def test_lazy_expiry_removes_entry(self, clock):
        cache = make_cache(clock)
        cache.set("k", {"v": 1})
        clock.advance(milliseconds=1001)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, clock):
        cache = make_cache(clock)
        cache.set("short", 1, ttl=timedelta(milliseconds=100))
        cache.set("long", 2)
        clock.advance(milliseconds=500)
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_cleanup_expired(self, clock):
        cache = make_cache(clock)
        cache.set("a", 1)
        cache.set("b", 2, ttl=timedelta(seconds=10))
        clock.advance(seconds=2)
        assert cache.cleanup_expired() == 1
        assert "a" not in cache
        assert "b" in cache

    def test_overwrite_resets_timestamp(self, clock):
        cache = make_cache(clock)
        cache.set("k", "old")
        clock.advance(milliseconds=800)
        cache.set("k", "new")
        clock.advance(milliseconds=800)
        assert cache.get("k") == "new"


class TestOwnership:
    def test_returned_payload_is_a_copy(self, clock):
        cache = make_cache(clock)
        payload = {"items": [1, 2]}
        cache.set("k", payload)
        payload["items"].append(3)

        first = cache.get("k")
        first["items"].append(4)

        assert cache.get("k") == {"items": [1, 2]}


class TestEviction:
    def test_oldest_evicted_when_full(self, clock):
        cache = make_cache(clock, max_size=2)
        cache.set("a", 1)
        clock.advance(milliseconds=10)
        cache.set("b", 2)
        clock.advance(milliseconds=10)
        cache.set("c", 3)

        assert "a" not in cache
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert cache.get_stats().evictions == 1

    def test_clear_and_invalidate(self, clock):
        cache = make_cache(clock)
        cache.set("GET:/notes/1:", 1)
        cache.set("GET:/notes/2:", 2)
        cache.set("GET:/tags/1:", 3)

        assert cache.invalidate("/notes/") == 2
        assert cache.delete("GET:/tags/1:") is True
        assert cache.delete("GET:/tags/1:") is False

        cache.set("x", 1)
        assert cache.clear() == 1
        assert len(cache) == 0

    def test_stats(self, clock):
        cache = make_cache(clock)
        cache.set("k", 1)
        cache.get("k")
        cache.get("missing")
        stats = cache.get_stats().to_dict()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.00%"
