import pytest

from dctop.cache import CacheEntry, CacheManager, cached


class Clock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock(mocker):
    fake = Clock()
    mocker.patch("dctop.cache.time.monotonic", side_effect=fake)
    return fake


class TestCacheManager:
    def setup_method(self):
        self.cache = CacheManager()

    def test_entry_expires_after_ttl(self, clock):
        self.cache.set("inspect:abc", "value")
        clock.now += 1.5
        assert self.cache.get("inspect:abc") == "value"
        clock.now += 1.0
        assert self.cache.get("inspect:abc") is None
        assert self.cache.get_stats()["evictions"] == 1

    def test_ttl_per_prefix(self, clock):
        self.cache.configure_ttl("inspect", 10.0)
        self.cache.set("inspect:abc", "value")
        clock.now += 5.0
        assert self.cache.get("inspect:abc") == "value"

    def test_ttl_override(self, clock):
        self.cache.set("inspect:abc", "value", ttl_override=0.1)
        clock.now += 0.5
        assert self.cache.get("inspect:abc") is None

    def test_cleanup_expired(self, clock):
        self.cache.set("inspect:a", 1)
        self.cache.set("inspect:b", 2, ttl_override=60.0)
        clock.now += 5.0
        assert self.cache.cleanup_expired() == 1
        assert self.cache.get_stats()["cache_size"] == 1

    def test_invalidate_by_prefix(self):
        self.cache.set("inspect:a", 1)
        self.cache.set("other:a", 2)
        self.cache.invalidate("inspect:")
        assert self.cache.get("inspect:a") is None
        assert self.cache.get("other:a") == 2
        self.cache.invalidate()
        assert self.cache.get("other:a") is None

    def test_hit_rate(self):
        self.cache.set("inspect:a", 1)
        self.cache.get("inspect:a")
        self.cache.get("inspect:missing")
        stats = self.cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate_percent"] == 50.0


def test_cache_entry_expiry():
    entry = CacheEntry("v", stored_at=10.0, ttl=2.0)
    assert not entry.is_expired(12.0)
    assert entry.is_expired(12.5)


class TestCachedDecorator:
    def setup_method(self):
        from dctop.cache import cache_manager
        cache_manager.invalidate()
        self.calls = []

    def teardown_method(self):
        from dctop.cache import cache_manager
        cache_manager.invalidate()

    def make_service(self, results):
        calls = self.calls

        class Service:
            @cached(key_prefix="lookup")
            def lookup(self, key):
                calls.append(key)
                return results.get(key)
        return Service()

    def test_caches_by_first_argument(self):
        service = self.make_service({"a": 1, "b": 2})
        assert service.lookup("a") == 1
        assert service.lookup("a") == 1
        assert service.lookup("b") == 2
        assert self.calls == ["a", "b"]

    def test_none_is_not_cached(self):
        service = self.make_service({})
        assert service.lookup("a") is None
        assert service.lookup("a") is None
        assert self.calls == ["a", "a"]
