"""
wodnow/core/timeout.py — Request timeout guard
Races a storage operation against a deadline. On timeout the operation is
NOT cancelled: it keeps running on the event loop, its eventual outcome is
drained and logged, and the caller gets RequestTimeout (503). The SQLAlchemy
pool reclaims the connection once the abandoned task finishes.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from loguru import logger

from wodnow.core import logging as app_logging
from wodnow.core.errors import RequestTimeout

T = TypeVar("T")


def _drain_abandoned(task: asyncio.Future) -> None:
    """Consume the result of an abandoned operation so it never goes unobserved."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        app_logging.log_error("timeout_guard", "abandoned_operation", exc)
    else:
        logger.debug("Abandoned operation finished after its deadline.")


async def with_timeout(
    operation: Awaitable[T],
    timeout_ms: int,
    scope: str = "public",
    path: str = "",
) -> T:
    """
    Await operation for at most timeout_ms.
    Exceptions raised by the operation before the deadline propagate unchanged.
    """
    task = asyncio.ensure_future(operation)
    done, _pending = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    if task in done:
        return task.result()

    task.add_done_callback(_drain_abandoned)
    app_logging.log_timeout(scope, timeout_ms, path)
    raise RequestTimeout()
