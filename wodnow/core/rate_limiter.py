"""
wodnow/core/rate_limiter.py — Fixed-window rate limiting on the `limits` engine
One RateLimiter per scope (public, admin), each with its own per-minute
limit. A window opens on the first hit for a key and resets after
window_seconds; counters live in process memory only.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter

ONE_MINUTE_SECONDS = 60


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int

    @property
    def headers(self) -> dict[str, str]:
        """Informational headers attached to every gated response."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_seconds),
        }


class RateLimiter:
    """Counts hits per key inside a fixed window and reports remaining quota."""

    def __init__(
        self,
        limit: int,
        window_seconds: int = ONE_MINUTE_SECONDS,
        storage: Optional[Storage] = None,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._item = RateLimitItemPerSecond(limit, window_seconds)
        self._storage = storage if storage is not None else MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)

    def hit(self, key: str) -> RateLimitResult:
        """Count one request for key; allowed is False once the limit is exceeded."""
        allowed = self._strategy.hit(self._item, key)
        stats = self._strategy.get_window_stats(self._item, key)
        reset_seconds = max(1, math.ceil(stats.reset_time - time.time()))
        return RateLimitResult(
            allowed=allowed,
            limit=self.limit,
            remaining=max(stats.remaining, 0),
            reset_seconds=reset_seconds,
        )

    def reset(self) -> None:
        self._storage.reset()
