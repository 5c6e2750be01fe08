"""
tests/conftest.py — Shared pytest fixtures
"""
from __future__ import annotations

import asyncio
import json
import random
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from wodnow.clients.database import WorkoutRepository, create_engine_from_settings
from wodnow.config import Settings
from wodnow.core.errors import StorageError
from wodnow.main import create_app
from wodnow.models import PublishResult, WorkoutDocument, WorkoutRecord
from wodnow.services.filters import FilterKey

ADMIN_KEY = "secret-key"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "environment": "testing",
        "database_url": "sqlite+aiosqlite:///:memory:",
        "auto_create_schema": False,
        "admin_api_key": ADMIN_KEY,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_record(
    workout_id: str,
    title: Optional[str] = None,
    time_cap_seconds: int = 600,
    equipment: Optional[list[str]] = None,
    is_published: bool = True,
) -> WorkoutRecord:
    return WorkoutRecord(
        id=workout_id,
        title=title or f"Workout {workout_id}",
        time_cap_seconds=time_cap_seconds,
        equipment=json.dumps(equipment or []),
        data=json.dumps({"blocks": [{"name": "Main", "movements": [{"name": "Burpee", "reps": 10}]}]}),
        is_published=is_published,
    )


def workout_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": "wod-001",
        "title": "Fran",
        "timeCapSeconds": 480,
        "equipment": ["barbell", "pull-up bar"],
        "blocks": [
            {
                "name": "Main Piece",
                "duration": 480,
                "movements": [
                    {"name": "Thruster", "reps": 45, "load": "95/65 lb"},
                ],
            }
        ],
        "notes": {"scaling": "Use lighter load"},
        "isPublished": True,
    }
    payload.update(overrides)
    return payload


class FakeRepository:
    """In-memory stand-in for WorkoutRepository that records every call."""

    def __init__(self, records: Optional[list[WorkoutRecord]] = None) -> None:
        self.records: dict[str, WorkoutRecord] = {r.id: r for r in records or []}
        self.random_calls: list[FilterKey] = []
        self.upserts: list[WorkoutDocument] = []
        self.delay: float = 0.0
        self.fail: bool = False
        self.fail_ids: set[str] = set()

    async def _io(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise StorageError()

    async def create_schema(self) -> None:
        return None

    async def dispose(self) -> None:
        return None

    async def find_random(self, filters: FilterKey) -> Optional[WorkoutRecord]:
        self.random_calls.append(filters)
        await self._io()
        published = [
            r for r in self.records.values()
            if r.is_published and r.id not in filters.exclude
        ]
        return published[0] if published else None

    async def find_published(self, workout_id: str) -> Optional[WorkoutRecord]:
        await self._io()
        record = self.records.get(workout_id)
        return record if record is not None and record.is_published else None

    async def count(self) -> int:
        await self._io()
        return len(self.records)

    async def upsert(self, document: WorkoutDocument) -> PublishResult:
        await self._io()
        if document.id in self.fail_ids:
            raise StorageError()
        self.upserts.append(document)
        self.records[document.id] = WorkoutRecord(
            id=document.id,
            title=document.title,
            time_cap_seconds=document.time_cap_seconds or 0,
            equipment=json.dumps(document.equipment),
            data=json.dumps(document.to_data()),
            is_published=document.is_published,
        )
        return PublishResult(id=document.id, is_published=document.is_published)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_repository() -> FakeRepository:
    return FakeRepository([make_record("w1", equipment=["Dumbbell", "Rower"])])


@pytest.fixture
def app(settings, fake_repository):
    return create_app(settings, repository=fake_repository)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def sqlite_repository():
    """Real SQL against in-memory SQLite, with a seeded RNG."""
    engine = create_engine_from_settings(make_settings())
    repository = WorkoutRepository(engine, rng=random.Random(20260207))
    await repository.create_schema()
    yield repository
    await repository.dispose()
