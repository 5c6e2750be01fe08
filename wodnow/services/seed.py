"""
wodnow/services/seed.py — Bulk dataset loader for the workouts table
Validates a JSON array of workout documents with the admin publish schema,
then upserts every workout as published.

Usage:
  python -m wodnow.services.seed                      # bundled data/workouts.json
  python -m wodnow.services.seed --dataset path.json  # custom dataset
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from loguru import logger

from wodnow.clients.database import WorkoutRepository, create_engine_from_settings
from wodnow.config import Settings, get_settings
from wodnow.core.errors import StorageError
from wodnow.core.logging import setup_logging
from wodnow.models import WorkoutDocument
from wodnow.utils.validators import validate_workout_payload

DEFAULT_DATASET_PATH = Path(__file__).resolve().parents[2] / "data" / "workouts.json"


class DatasetValidationError(Exception):
    """Raised with one "index=… path=… message=…" line per problem."""

    def __init__(self, issues: list[str]) -> None:
        self.issues = issues
        super().__init__(
            f"Dataset validation failed with {len(issues)} issue(s):\n" + "\n".join(issues)
        )


class SeedError(Exception):
    pass


# ──────────────────────────────────────────────────────────────────────────────
# Validation
# ──────────────────────────────────────────────────────────────────────────────

def validate_dataset(payload: Any) -> list[WorkoutDocument]:
    """
    Every item must pass the workout schema, carry timeCapSeconds and use
    an id not seen earlier in the array. All issues are collected before
    raising, so one run reports the whole dataset.
    """
    if not isinstance(payload, list):
        raise DatasetValidationError(["path=$ message=Seed payload must be an array of workouts"])

    seen_ids: set[str] = set()
    documents: list[WorkoutDocument] = []
    issues: list[str] = []

    for index, item in enumerate(payload):
        document, errors = validate_workout_payload(item)
        if document is None:
            issues.extend(
                f"index={index} path={error.path} message={error.message}"
                for error in errors
            )
            continue
        if document.time_cap_seconds is None:
            issues.append(f"index={index} path=timeCapSeconds message=Must be provided")
            continue
        if document.id in seen_ids:
            issues.append(
                f'index={index} path=id message=Duplicate workout id "{document.id}"'
            )
            continue
        seen_ids.add(document.id)
        documents.append(document)

    if issues:
        raise DatasetValidationError(issues)
    return documents


def load_dataset(path: Path = DEFAULT_DATASET_PATH) -> list[WorkoutDocument]:
    with path.open(encoding="utf-8") as handle:
        payload = json.load(handle)
    return validate_dataset(payload)


# ──────────────────────────────────────────────────────────────────────────────
# Upsert
# ──────────────────────────────────────────────────────────────────────────────

async def seed_workouts(
    repository: WorkoutRepository,
    documents: Sequence[WorkoutDocument],
) -> int:
    """
    Upsert each document as published. A failed row does not stop the run;
    SeedError is raised at the end if any row failed. Returns the success count.
    """
    success_count = 0
    failure_count = 0
    logger.info(f"[seed] starting upsert for {len(documents)} workout(s)")

    for document in documents:
        published = document.model_copy(update={"is_published": True})
        try:
            await repository.upsert(published)
        except StorageError as exc:
            failure_count += 1
            logger.error(f"[seed] failed workout id={document.id} error={exc.__cause__ or exc}")
            continue
        success_count += 1
        logger.info(f"[seed] upserted workout id={document.id} published=true")

    logger.info(f"[seed] complete success={success_count} failure={failure_count}")
    if failure_count:
        raise SeedError(f"Seed finished with {failure_count} failure(s)")
    return success_count


async def run_seed(
    settings: Settings,
    dataset_path: Path = DEFAULT_DATASET_PATH,
) -> int:
    """Validate the whole dataset first, then create the schema and upsert."""
    logger.info(f"[seed] loading dataset from {dataset_path}")
    documents = load_dataset(dataset_path)
    logger.info(f"[seed] validated {len(documents)} workout(s)")

    repository = WorkoutRepository(create_engine_from_settings(settings))
    try:
        await repository.create_schema()
        return await seed_workouts(repository, documents)
    finally:
        await repository.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Load a workout dataset into the database.")
    parser.add_argument(
        "--dataset",
        type=Path,
        default=DEFAULT_DATASET_PATH,
        help="JSON array of workout documents (default: data/workouts.json)",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level)
    try:
        asyncio.run(run_seed(settings, args.dataset))
    except (OSError, json.JSONDecodeError, DatasetValidationError, SeedError, StorageError) as exc:
        logger.error(f"[seed] fatal error={exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
