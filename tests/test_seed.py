"""
tests/test_seed.py — Unit tests for the dataset seed workflow
"""
from __future__ import annotations

import json

import pytest

from tests.conftest import FakeRepository, make_settings, workout_payload
from wodnow.clients.database import WorkoutRepository, create_engine_from_settings
from wodnow.services import seed
from wodnow.services.seed import (
    DatasetValidationError,
    SeedError,
    load_dataset,
    run_seed,
    seed_workouts,
    validate_dataset,
)


def test_bundled_dataset_is_valid():
    documents = load_dataset()
    assert len(documents) >= 5
    assert len({d.id for d in documents}) == len(documents)
    assert all(d.time_cap_seconds for d in documents)


def test_payload_must_be_an_array():
    with pytest.raises(DatasetValidationError) as exc_info:
        validate_dataset({"id": "w1"})
    assert "Seed payload must be an array of workouts" in str(exc_info.value)


def test_duplicate_ids_are_rejected():
    with pytest.raises(DatasetValidationError) as exc_info:
        validate_dataset([
            workout_payload(id="dup-1", title="One"),
            workout_payload(id="dup-1", title="Two"),
        ])
    assert exc_info.value.issues == ['index=1 path=id message=Duplicate workout id "dup-1"']


def test_time_cap_is_required():
    payload = workout_payload()
    del payload["timeCapSeconds"]
    with pytest.raises(DatasetValidationError) as exc_info:
        validate_dataset([payload])
    assert exc_info.value.issues == ["index=0 path=timeCapSeconds message=Must be provided"]


def test_all_schema_issues_are_reported():
    with pytest.raises(DatasetValidationError) as exc_info:
        validate_dataset([
            workout_payload(id="ok"),
            workout_payload(id="bad-1", blocks=[]),
            workout_payload(id="bad-2", title=""),
        ])
    assert exc_info.value.issues == [
        "index=1 path=blocks message=Workout must include at least one block",
        "index=2 path=title message=Must not be empty",
    ]
    assert str(exc_info.value).startswith("Dataset validation failed with 2 issue(s):")


async def test_seed_publishes_every_workout():
    repository = FakeRepository()
    documents = validate_dataset([
        workout_payload(id="w1", isPublished=False),
        workout_payload(id="w2"),
    ])

    assert await seed_workouts(repository, documents) == 2
    assert [d.id for d in repository.upserts] == ["w1", "w2"]
    assert all(d.is_published for d in repository.upserts)


async def test_seed_continues_past_failures_then_raises():
    repository = FakeRepository()
    repository.fail_ids = {"bad-1"}
    documents = validate_dataset([
        workout_payload(id="bad-1"),
        workout_payload(id="ok-1"),
    ])

    with pytest.raises(SeedError, match=r"Seed finished with 1 failure\(s\)"):
        await seed_workouts(repository, documents)
    assert [d.id for d in repository.upserts] == ["ok-1"]


async def test_run_seed_loads_into_database(tmp_path):
    dataset = tmp_path / "workouts.json"
    dataset.write_text(json.dumps([
        workout_payload(id="w1", isPublished=False),
        workout_payload(id="w2"),
    ]))
    settings = make_settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'seed.db'}")

    assert await run_seed(settings, dataset) == 2
    # running twice overwrites instead of duplicating
    assert await run_seed(settings, dataset) == 2

    repository = WorkoutRepository(create_engine_from_settings(settings))
    try:
        assert await repository.count() == 2
        record = await repository.find_published("w1")
        assert record is not None
        assert record.is_published is True
    finally:
        await repository.dispose()


def test_main_exit_codes(tmp_path, monkeypatch):
    settings = make_settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setattr(seed, "get_settings", lambda: settings)

    valid = tmp_path / "valid.json"
    valid.write_text(json.dumps([workout_payload()]))
    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps([workout_payload(blocks=[])]))

    assert seed.main(["--dataset", str(valid)]) == 0
    assert seed.main(["--dataset", str(invalid)]) == 1
    assert seed.main(["--dataset", str(tmp_path / "missing.json")]) == 1
