"""
wodnow/services/publisher.py — Admin publish flow
validate → upsert by id (under the admin timeout) → flush the response cache.
Nothing is written and the cache is untouched when validation fails.
"""
from __future__ import annotations

import time
from typing import Any

from wodnow.clients.database import WorkoutRepository
from wodnow.core import logging as app_logging
from wodnow.core.cache_manager import ResponseCache
from wodnow.core.errors import ValidationError
from wodnow.core.timeout import with_timeout
from wodnow.models import PublishResult
from wodnow.utils.validators import validate_workout_payload


async def publish_workout(
    payload: Any,
    repository: WorkoutRepository,
    cache: ResponseCache,
    timeout_ms: int,
    path: str = "",
) -> PublishResult:
    """
    Create or overwrite a workout from an admin payload.
    Raises ValidationError (with the validator's details unchanged),
    StorageError or RequestTimeout.
    """
    document, errors = validate_workout_payload(payload)
    if document is None:
        raise ValidationError(
            "Workout payload validation failed",
            details=[error.model_dump() for error in errors],
        )

    start = time.perf_counter()
    result = await with_timeout(
        repository.upsert(document), timeout_ms, scope="admin", path=path
    )
    app_logging.log_publish(
        result.id, result.is_published, (time.perf_counter() - start) * 1000
    )

    # Any cached filter key could have matched the changed row.
    cache.clear()
    return result
