"""
Tests for TTLCache.
"""

from vine_ladder.cache import TTLCache


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_get_or_set_reuses_until_expiry():
    clock = Clock()
    cache = TTLCache(clock=clock)
    calls = []

    def loader():
        calls.append(1)
        return len(calls)

    assert cache.get_or_set("k", 10, loader) == 1
    clock.now += 5
    assert cache.get_or_set("k", 10, loader) == 1
    clock.now += 6
    assert cache.get_or_set("k", 10, loader) == 2


def test_invalidate_prefix():
    cache = TTLCache()
    cache.get_or_set("standings:records:a", 60, lambda: 1)
    cache.get_or_set("standings:roster:a", 60, lambda: 2)
    assert cache.invalidate("standings:records:") == 1
    assert cache.get_or_set("standings:records:a", 60, lambda: 3) == 3
    assert cache.get_or_set("standings:roster:a", 60, lambda: 4) == 2


def test_failed_loader_stores_nothing():
    cache = TTLCache()

    def boom():
        raise RuntimeError("x")

    try:
        cache.get_or_set("k", 60, boom)
    except RuntimeError:
        pass
    assert cache.get_or_set("k", 60, lambda: "ok") == "ok"
