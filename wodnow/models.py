"""
wodnow/models.py — All Pydantic data schemas
Workout document schema (admin publish payload), stored-record projection
and API response bodies. JSON field names are camelCase on the wire.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    PlainValidator,
    PositiveInt,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError


# ──────────────────────────────────────────────────────────────────────────────
# Reusable field types
# ──────────────────────────────────────────────────────────────────────────────

def _non_empty(value: str) -> str:
    value = value.strip()
    if not value:
        raise PydanticCustomError("empty_string", "Must not be empty")
    return value


def _at_least_one_block(value: list) -> list:
    if not value:
        raise PydanticCustomError(
            "too_short", "Workout must include at least one block"
        )
    return value


def _at_least_one_movement(value: list) -> list:
    if not value:
        raise PydanticCustomError(
            "too_short", "Block must include at least one movement"
        )
    return value


NonEmptyStr = Annotated[str, AfterValidator(_non_empty)]
RepScheme = Annotated[list[PositiveInt], Field(min_length=1)]


class _DocumentModel(BaseModel):
    """Strict: unknown keys are rejected and values are never coerced."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="forbid",
        strict=True,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Workout document — admin publish payload
# ──────────────────────────────────────────────────────────────────────────────

class MovementLoads(_DocumentModel):
    female: Optional[NonEmptyStr] = None
    male: Optional[NonEmptyStr] = None


class Movement(_DocumentModel):
    name: NonEmptyStr
    reps: Optional[PositiveInt] = None
    rep_scheme: Optional[RepScheme] = None
    calories: Optional[PositiveInt] = None
    distance_meters: Optional[PositiveInt] = None
    load: Optional[NonEmptyStr] = None
    loads: Optional[MovementLoads] = None
    notes: Optional[NonEmptyStr] = None

    @property
    def has_prescription(self) -> bool:
        return any(
            value is not None
            for value in (
                self.reps,
                self.rep_scheme,
                self.calories,
                self.distance_meters,
                self.load,
                self.loads,
            )
        )


def _duration(value: Any) -> Union[int, str]:
    if value == "remaining":
        return value
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    raise PydanticCustomError(
        "duration_type", 'duration must be a positive integer or "remaining"'
    )


Duration = Annotated[Union[PositiveInt, Literal["remaining"]], PlainValidator(_duration)]


class WorkoutBlock(_DocumentModel):
    name: NonEmptyStr
    duration: Optional[Duration] = None
    rep_scheme: Optional[RepScheme] = None
    movements: Annotated[list[Movement], AfterValidator(_at_least_one_movement)]
    notes: Optional[NonEmptyStr] = None


class WorkoutNotes(_DocumentModel):
    coach: Optional[NonEmptyStr] = None
    scaling: Optional[NonEmptyStr] = None


class WorkoutDocument(_DocumentModel):
    id: NonEmptyStr
    title: NonEmptyStr
    time_cap_seconds: Optional[PositiveInt] = None
    equipment: list[NonEmptyStr] = Field(default_factory=list)
    blocks: Annotated[list[WorkoutBlock], AfterValidator(_at_least_one_block)]
    notes: Optional[WorkoutNotes] = None
    is_published: bool = False

    def to_data(self) -> dict[str, Any]:
        """Serialized workout body: blocks, plus notes when present."""
        data: dict[str, Any] = {
            "blocks": [
                block.model_dump(by_alias=True, exclude_none=True)
                for block in self.blocks
            ]
        }
        if self.notes is not None:
            data["notes"] = self.notes.model_dump(by_alias=True, exclude_none=True)
        return data


class FieldError(BaseModel):
    path: str
    message: str


# ──────────────────────────────────────────────────────────────────────────────
# Stored record and API responses
# ──────────────────────────────────────────────────────────────────────────────

class WorkoutRecord(BaseModel):
    """Row as stored: equipment and data are JSON text."""

    id: str
    title: str
    time_cap_seconds: int
    equipment: str
    data: str
    is_published: bool


class _ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkoutResponse(_ResponseModel):
    id: str
    title: str
    time_cap_seconds: int
    equipment: list[str]
    data: Any


class PublishResult(_ResponseModel):
    id: str
    is_published: bool


class WorkoutCountResponse(BaseModel):
    count: int
