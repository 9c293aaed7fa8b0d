"""Tests for the TTL cache and cache keys."""

from listings_backend.cache import MISS, CacheRegistry, TTLCache, generate_cache_key


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_get_within_ttl_returns_value():
    clock = FakeClock()
    cache = TTLCache(300, clock=clock)
    cache.set("listings:{}", [{"id": "1"}])
    clock.now += 299
    assert cache.get("listings:{}") == [{"id": "1"}]


def test_get_after_ttl_is_miss_and_drops_entry():
    clock = FakeClock()
    cache = TTLCache(300, clock=clock)
    cache.set("key", "value")
    clock.now += 301
    assert cache.get("key") is MISS
    assert cache.size() == 0


def test_entry_still_valid_exactly_at_expiry():
    clock = FakeClock()
    cache = TTLCache(0, clock=clock)
    cache.set("key", "value")
    assert cache.get("key") == "value"
    clock.now += 0.001
    assert cache.get("key") is MISS


def test_cached_empty_results_are_not_misses():
    cache = TTLCache(60)
    cache.set("none", None)
    cache.set("empty", [])
    assert cache.get("none") is None
    assert cache.get("empty") == []
    assert cache.get("absent") is MISS


def test_expired_entries_are_not_swept_until_looked_up():
    clock = FakeClock()
    cache = TTLCache(10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    clock.now += 20
    assert cache.size() == 2
    cache.get("a")
    assert cache.size() == 1


def test_clear_drops_everything():
    cache = TTLCache(60)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert cache.size() == 0
    assert cache.get("a") is MISS


def test_cache_key_ignores_parameter_order():
    first = generate_cache_key("/clients/search", {"city": "Dracut", "lp": 100000, "st": "MA"})
    second = generate_cache_key("/clients/search", {"st": "MA", "lp": 100000, "city": "Dracut"})
    assert first == second
    assert first.startswith("/clients/search:")


def test_cache_key_differs_by_operation_and_values():
    assert generate_cache_key("a", {"x": 1}) != generate_cache_key("b", {"x": 1})
    assert generate_cache_key("a", {"x": 1}) != generate_cache_key("a", {"x": 2})
    assert generate_cache_key("a", None) == generate_cache_key("a", {})


def test_registry_uses_configured_ttls(test_settings):
    registry = CacheRegistry.from_settings(test_settings)
    assert registry.listings.ttl == 300
    assert registry.reference.ttl == 3600
    assert registry.stats.ttl == 1800

    registry.listings.set("a", 1)
    registry.reference.set("b", 2)
    assert registry.stats_snapshot() == {"listings": 1, "reference": 1, "stats": 0}
    registry.clear()
    assert registry.stats_snapshot() == {"listings": 0, "reference": 0, "stats": 0}
