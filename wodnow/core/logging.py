"""
wodnow/core/logging.py — loguru structured JSON logging setup
Every gate rejection, cache decision, random selection, publish and error
goes through one of the helpers below so records share the same shape.
"""
from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure loguru for structured JSON output to stdout.
    The hosting platform captures stdout; nothing is written to disk.
    """
    # Remove default loguru handler
    logger.remove()

    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{message}",
        serialize=True,       # loguru built-in JSON serialization
        backtrace=True,
        diagnose=False,       # never dump locals (may hold admin keys)
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Event helpers
# ──────────────────────────────────────────────────────────────────────────────

def log_gate_rejection(
    code: str,
    status_code: int,
    client_key: str,
    path: str,
    retry_after: Optional[int] = None,
) -> None:
    """Abuse protection rejected a request before it reached a handler."""
    record = _build_log_record("abuse_protection", "reject", {
        "code": code,
        "status": status_code,
        "client_key": client_key,
        "path": path,
        "retry_after": retry_after,
    })
    logger.warning(json.dumps(record))


def log_admin_auth_failure(
    client_key: str,
    failures: int,
    lockout_seconds: int,
) -> None:
    record = _build_log_record("admin_auth", "auth_failure", {
        "client_key": client_key,
        "failures": failures,
        "lockout_seconds": lockout_seconds,
    })
    logger.warning(json.dumps(record))


def log_cache_event(operation: str, cache_key: str, size: int) -> None:
    """operation: hit | miss | store | flush"""
    record = _build_log_record("response_cache", operation, {
        "cache_key": cache_key,
        "size": size,
    })
    logger.debug(json.dumps(record))


def log_random_selection(
    match_count: int,
    offset: Optional[int],
    found: bool,
    latency_ms: float,
) -> None:
    record = _build_log_record("workout_repository", "find_random", {
        "match_count": match_count,
        "offset": offset,
        "found": found,
        "latency_ms": round(latency_ms, 2),
    })
    logger.info(json.dumps(record))


def log_publish(workout_id: str, is_published: bool, latency_ms: float) -> None:
    record = _build_log_record("publisher", "upsert", {
        "workout_id": workout_id,
        "is_published": is_published,
        "latency_ms": round(latency_ms, 2),
    })
    logger.info(json.dumps(record))


def log_timeout(scope: str, timeout_ms: int, path: str) -> None:
    record = _build_log_record("timeout_guard", "timeout", {
        "scope": scope,
        "timeout_ms": timeout_ms,
        "path": path,
    })
    logger.warning(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: BaseException,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Every internal error is logged with full context; clients never see it."""
    tb = "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000] if tb else "",
        "context": context or {},
    })
    logger.error(json.dumps(record))
