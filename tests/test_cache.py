"""Tests for the TTL cache."""
import threading

from repolens.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_value_available_before_ttl(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.set("k", "v")
        clock.now += 9.9
        assert cache.get("k") == "v"

    def test_value_absent_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.set("k", "v")
        clock.now += 10.001
        assert cache.get("k") is None

    def test_expiry_instant_still_valid(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.set("k", "v")
        clock.now += 10
        assert cache.get("k") == "v"

    def test_expired_entry_evicted_on_lookup(self):
        clock = FakeClock()
        cache = TTLCache(1, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        clock.now += 5
        assert len(cache) == 2
        cache.get("a")
        assert len(cache) == 1

    def test_per_entry_ttl(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.set("short", 1)
        cache.set("long", 2, ttl=30)
        clock.now += 20
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_set_overwrites_and_refreshes(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.set("k", "old")
        clock.now += 8
        cache.set("k", "new")
        clock.now += 8
        assert cache.get("k") == "new"

    def test_missing_key(self):
        assert TTLCache(10).get("nope") is None

    def test_independent_instances(self):
        a, b = TTLCache(10), TTLCache(10)
        a.set("k", 1)
        assert b.get("k") is None

    def test_clear(self):
        cache = TTLCache(10)
        cache.set("k", 1)
        cache.clear()
        assert cache.get("k") is None

    def test_concurrent_access(self):
        cache = TTLCache(60)

        def worker(n):
            for i in range(200):
                cache.set((n, i), i)
                assert cache.get((n, i)) == i

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(cache) == 8 * 200
