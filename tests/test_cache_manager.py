"""
tests/test_cache_manager.py — Unit tests for the random-workout response cache
"""
from __future__ import annotations

from wodnow.core.cache_manager import ResponseCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_get_returns_stored_value_before_expiry():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=30, clock=clock)
    cache.set("k", {"id": "w1"})
    clock.now += 29.9
    assert cache.get("k") == {"id": "w1"}


def test_entry_expires_after_ttl():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=30, clock=clock)
    cache.set("k", {"id": "w1"})
    clock.now += 30
    assert cache.get("k") is None
    assert len(cache) == 0


def test_missing_key_is_none():
    assert ResponseCache().get("nope") is None


def test_oldest_insert_is_evicted_at_capacity():
    cache = ResponseCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)
    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_clear_flushes_everything():
    cache = ResponseCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert len(cache) == 0
    assert cache.get("a") is None
