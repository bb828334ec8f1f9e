from nearby.core.cache import InMemoryCache, RedisCache, build_cache_key, invalidate_prefixes
from tests.helpers import BrokenRedis, FakeRedis


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_cache_key_is_order_independent():
    first = build_cache_key("services:search", {"latitude": 1.5, "radius": 1000, "tags": ["a", "b"]})
    second = build_cache_key("services:search", {"tags": ["a", "b"], "radius": 1000, "latitude": 1.5})
    assert first == second
    assert first.startswith("services:search:")


def test_long_cache_key_is_hashed_under_scope():
    key = build_cache_key("services:search", {"keyword": "x" * 1000})
    assert key.startswith("services:search:")
    assert len(key) < 100


def test_memory_cache_expires_entries():
    clock = FakeClock()
    backend = InMemoryCache(clock=clock)
    backend.set("k", {"value": 1}, ttl_seconds=10)

    assert backend.get("k") == {"value": 1}
    clock.now += 10
    assert backend.get("k") is None
    assert backend.stats()["misses"] == 1


def test_memory_cache_prefix_delete():
    backend = InMemoryCache()
    backend.set("services:search:a", [1], 60)
    backend.set("services:search:b", [2], 60)
    backend.set("services:popular:page=1", [3], 60)
    backend.set("service-types:all", [4], 60)

    removed = invalidate_prefixes(backend, ["services:search:", "services:popular:"])

    assert removed == 3
    assert backend.keys() == ["service-types:all"]


def test_redis_cache_round_trip_and_prefix_delete():
    backend = RedisCache(FakeRedis())
    backend.set("user:jwt-validation:1", {"id": "1"}, 900)
    backend.set("services:search:x", {"items": []}, 300)

    assert backend.get("user:jwt-validation:1") == {"id": "1"}
    assert backend.delete_prefix("services:search:") == 1
    assert backend.get("services:search:x") is None


def test_redis_failures_are_swallowed():
    backend = RedisCache(BrokenRedis())

    assert backend.get("k") is None
    assert backend.set("k", 1, 10) is False
    assert backend.delete("k") == 0
    assert backend.delete_prefix("k") == 0
    assert backend.ping() is False
    assert backend.stats()["errors"] == 5
