"""
wodnow/utils/validators.py — Workout schema validation and safe JSON parsing
Turns pydantic validation errors into the API's {path, message} pairs and
guards the read path against stored rows whose JSON columns are corrupt.
"""
from __future__ import annotations

import json
from typing import Any, Optional, Sequence, Union

from loguru import logger
from pydantic import ValidationError

from wodnow.models import FieldError, WorkoutDocument, WorkoutRecord, WorkoutResponse

ROOT_PATH = "$"


def safe_parse_json(text: str) -> Optional[Any]:
    """
    Safely parse JSON text. Returns None on failure (no exception raised).
    Logs the parse error for debugging.
    """
    try:
        return json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        logger.debug(f"JSON parse failed: {exc} | Text: {str(text)[:200]!r}")
        return None


def to_path(loc: Sequence[Union[int, str]]) -> str:
    """('blocks', 0, 'movements') → 'blocks.[0].movements'; empty → '$'."""
    if not loc:
        return ROOT_PATH
    return ".".join(
        f"[{segment}]" if isinstance(segment, int) else str(segment)
        for segment in loc
    )


def _cross_field_errors(document: WorkoutDocument) -> list[FieldError]:
    """Rules spanning several fields, checked once the shape is valid."""
    errors: list[FieldError] = []

    for block_index, block in enumerate(document.blocks):
        for movement_index, movement in enumerate(block.movements):
            base = ("blocks", block_index, "movements", movement_index)

            loads = movement.loads
            if loads is not None and loads.female is None and loads.male is None:
                errors.append(FieldError(
                    path=to_path(base + ("loads", "female")),
                    message="loads must define at least one of female or male",
                ))

            if block.rep_scheme is None and not movement.has_prescription:
                errors.append(FieldError(
                    path=to_path(base + ("reps",)),
                    message=(
                        "Movement must define at least one of reps, repScheme, "
                        "calories, distanceMeters, load, loads, or block repScheme"
                    ),
                ))

    has_remaining_block = any(b.duration == "remaining" for b in document.blocks)
    if has_remaining_block and document.time_cap_seconds is None:
        errors.append(FieldError(
            path="timeCapSeconds",
            message='timeCapSeconds is required when any block uses duration="remaining"',
        ))

    return errors


def validate_workout_payload(
    payload: Any,
) -> tuple[Optional[WorkoutDocument], list[FieldError]]:
    """
    Validate an admin publish payload.
    Returns (document, []) on success or (None, errors) with one
    {path, message} pair per problem, in validator order.
    """
    try:
        document = WorkoutDocument.model_validate(payload)
    except ValidationError as exc:
        return None, [
            FieldError(path=to_path(err["loc"]), message=err["msg"])
            for err in exc.errors()
        ]

    errors = _cross_field_errors(document)
    if errors:
        return None, errors
    return document, []


# ──────────────────────────────────────────────────────────────────────────────
# Stored record → API response
# ──────────────────────────────────────────────────────────────────────────────

def parse_equipment(text: str) -> Optional[list[str]]:
    parsed = safe_parse_json(text)
    if not isinstance(parsed, list) or not all(isinstance(i, str) for i in parsed):
        return None
    return parsed


def to_workout_response(record: WorkoutRecord) -> Optional[WorkoutResponse]:
    """None if the stored equipment or data column is not valid JSON."""
    equipment = parse_equipment(record.equipment)
    data = safe_parse_json(record.data)
    if equipment is None or data is None:
        logger.warning(f"Stored workout {record.id!r} has an invalid JSON payload.")
        return None
    return WorkoutResponse(
        id=record.id,
        title=record.title,
        time_cap_seconds=record.time_cap_seconds,
        equipment=equipment,
        data=data,
    )
