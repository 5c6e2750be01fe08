"""
wodnow/core/cache_manager.py — In-memory response cache for random workouts
Bounded TTL map keyed by FilterKey.cache_key. Expiry is lazy (checked on
read), eviction is by insertion order, and the publish flow flushes the
whole map after every successful write.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from wodnow.core import logging as app_logging


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class ResponseCache:
    """
    Process-wide cache of random-workout payloads.
    Only cache-eligible requests (no exclusion list) should be stored here.
    """

    def __init__(
        self,
        ttl_seconds: int = 30,
        max_entries: int = 200,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = max(1, ttl_seconds)
        self.max_entries = max(1, max_entries)
        self._clock = clock
        # dict preserves insertion order: the first key is the oldest insert
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            app_logging.log_cache_event("miss", key, len(self._entries))
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            app_logging.log_cache_event("miss", key, len(self._entries))
            return None
        app_logging.log_cache_event("hit", key, len(self._entries))
        return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting the oldest insert first when full."""
        if len(self._entries) >= self.max_entries:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
        self._entries[key] = CacheEntry(
            value=value,
            expires_at=self._clock() + self.ttl_seconds,
        )
        app_logging.log_cache_event("store", key, len(self._entries))

    def clear(self) -> None:
        """Full flush. Called after every successful admin publish."""
        self._entries.clear()
        app_logging.log_cache_event("flush", "*", 0)
