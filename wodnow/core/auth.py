"""
wodnow/core/auth.py — Admin API key check and progressive lockout
Admin requests authenticate with the X-Admin-Key header. Repeated failures
from one client identity lock it out with exponential backoff; a single
success clears the state.
"""
from __future__ import annotations

import math
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from wodnow.core import logging as app_logging
from wodnow.core.errors import AdminLocked, ApiError, Unauthorized


def is_valid_admin_key(provided: Optional[str], configured: Optional[str]) -> bool:
    """Constant-time comparison. No configured key means nobody is admin."""
    if not configured or not provided:
        return False
    return secrets.compare_digest(
        provided.encode("utf-8"),
        configured.encode("utf-8"),
    )


@dataclass
class AdminAuthState:
    failures: int = 0
    lockout_until: float = 0.0


class AdminLockout:
    """Tracks failed admin authentications per client key."""

    def __init__(
        self,
        failure_threshold: int = 5,
        base_seconds: int = 30,
        max_seconds: int = 900,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.base_seconds = base_seconds
        self.max_seconds = max_seconds
        self._clock = clock
        self._states: dict[str, AdminAuthState] = {}

    def state_for(self, key: str) -> AdminAuthState:
        return self._states.get(key, AdminAuthState())

    def retry_after(self, key: str) -> Optional[int]:
        """Seconds until the lockout for key expires, or None if not locked."""
        state = self._states.get(key)
        if state is None:
            return None
        remaining = state.lockout_until - self._clock()
        if remaining <= 0:
            return None
        return max(1, math.ceil(remaining))

    def lockout_seconds(self, failures: int) -> int:
        """min(max, base * 2^(failures - threshold)) once at or past threshold."""
        if failures < self.failure_threshold:
            return 0
        past_threshold = failures - self.failure_threshold
        return min(self.max_seconds, self.base_seconds * 2 ** past_threshold)

    def register_failure(self, key: str) -> ApiError:
        """
        Record a failed attempt and return the error to report:
        Unauthorized below the threshold, AdminLocked with Retry-After otherwise.
        """
        failures = self.state_for(key).failures + 1
        lockout = self.lockout_seconds(failures)
        self._states[key] = AdminAuthState(
            failures=failures,
            lockout_until=self._clock() + lockout if lockout > 0 else 0.0,
        )
        app_logging.log_admin_auth_failure(key, failures, lockout)

        if lockout > 0:
            return AdminLocked(headers={"Retry-After": str(lockout)})
        return Unauthorized()

    def clear(self, key: str) -> None:
        self._states.pop(key, None)

    def reset(self) -> None:
        self._states.clear()
