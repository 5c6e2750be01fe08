"""
wodnow/clients/database.py — Async SQLAlchemy client for the workouts table
Works against PostgreSQL (asyncpg) in production and SQLite (aiosqlite) in
development and tests. Every driver error leaves this module as StorageError.

Random selection is COUNT + ORDER BY id OFFSET n LIMIT 1 over the same
predicate, never ORDER BY random(). The two queries are not wrapped in one
snapshot: a publish landing between them can make the offset miss, which
reads as "no match" for that one request.
"""
from __future__ import annotations

import json
import random
import time
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Index,
    Integer,
    String,
    Text,
    func,
    select,
    text,
    true,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.elements import ColumnElement

from wodnow.config import Settings
from wodnow.core import logging as app_logging
from wodnow.core.errors import StorageError
from wodnow.models import PublishResult, WorkoutDocument, WorkoutRecord
from wodnow.services.filters import FilterKey


# ──────────────────────────────────────────────────────────────────────────────
# Schema
# ──────────────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


class Workout(Base):
    __tablename__ = "workouts"
    # id closes every index so the ORDER BY id OFFSET scan stays on the index
    __table_args__ = (
        Index("idx_workouts_is_published", "is_published", "id"),
        Index(
            "idx_workouts_published_time_cap",
            "is_published",
            "time_cap_seconds",
            "id",
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    time_cap_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    equipment: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON list
    data: Mapped[str] = mapped_column(Text, nullable=False)  # JSON {blocks, notes?}
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """SQLite gets a shared StaticPool for :memory:, servers get a bounded pool."""
    url = settings.database_url
    if url.startswith("sqlite"):
        if ":memory:" in url:
            return create_async_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_async_engine(url)
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_pool_size,
        pool_timeout=30,
    )


def _to_record(row: Workout) -> WorkoutRecord:
    return WorkoutRecord.model_validate(row, from_attributes=True)


# ──────────────────────────────────────────────────────────────────────────────
# Repository
# ──────────────────────────────────────────────────────────────────────────────

class WorkoutRepository:
    """All reads and writes against the workouts table."""

    def __init__(self, engine: AsyncEngine, rng: Optional[random.Random] = None) -> None:
        self.engine = engine
        self._sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        self._rng = rng or random.Random()

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def create_schema(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as exc:
            app_logging.log_error("workout_repository", "create_schema", exc)
            raise StorageError() from exc

    async def dispose(self) -> None:
        await self.engine.dispose()

    # ── Predicate construction ───────────────────────────────────────────────

    def _equipment_clause(self, token: str, index: int) -> ColumnElement[bool]:
        """Case-insensitive membership of token in the row's JSON equipment list."""
        param = f"equipment_{index}"
        if self.dialect == "postgresql":
            sql = (
                "EXISTS (SELECT 1 FROM jsonb_array_elements_text("
                "CAST(workouts.equipment AS jsonb)) AS item(value) "
                f"WHERE lower(item.value) = :{param})"
            )
        else:
            sql = (
                "EXISTS (SELECT 1 FROM json_each(workouts.equipment) AS item "
                f"WHERE lower(item.value) = :{param})"
            )
        return text(sql).bindparams(**{param: token.lower()})

    def build_predicate(self, filters: FilterKey) -> list[ColumnElement[bool]]:
        """
        WHERE clauses shared verbatim by the count and the offset query so
        both see exactly the same matching set.
        """
        clauses: list[ColumnElement[bool]] = [Workout.is_published == true()]
        if filters.time_cap_max is not None:
            clauses.append(Workout.time_cap_seconds <= filters.time_cap_max)
        if filters.exclude:
            clauses.append(Workout.id.not_in(filters.exclude))
        for index, token in enumerate(filters.equipment):
            clauses.append(self._equipment_clause(token, index))
        return clauses

    # ── Reads ────────────────────────────────────────────────────────────────

    async def find_random(self, filters: FilterKey) -> Optional[WorkoutRecord]:
        """One published workout matching filters, each with probability 1/count."""
        start = time.perf_counter()
        predicate = self.build_predicate(filters)
        try:
            async with self._sessions() as session:
                count_stmt = select(func.count()).select_from(Workout).where(*predicate)
                count = (await session.execute(count_stmt)).scalar_one()
                if count == 0:
                    app_logging.log_random_selection(
                        0, None, False, (time.perf_counter() - start) * 1000
                    )
                    return None

                offset = self._rng.randrange(count)
                row_stmt = (
                    select(Workout)
                    .where(*predicate)
                    .order_by(Workout.id)
                    .offset(offset)
                    .limit(1)
                )
                row = (await session.execute(row_stmt)).scalars().first()
        except SQLAlchemyError as exc:
            app_logging.log_error(
                "workout_repository", "find_random", exc,
                {"filters": filters.cache_key},
            )
            raise StorageError() from exc

        app_logging.log_random_selection(
            count, offset, row is not None, (time.perf_counter() - start) * 1000
        )
        return _to_record(row) if row is not None else None

    async def find_published(self, workout_id: str) -> Optional[WorkoutRecord]:
        stmt = (
            select(Workout)
            .where(Workout.id == workout_id, Workout.is_published == true())
            .limit(1)
        )
        try:
            async with self._sessions() as session:
                row = (await session.execute(stmt)).scalars().first()
        except SQLAlchemyError as exc:
            app_logging.log_error(
                "workout_repository", "find_published", exc, {"workout_id": workout_id}
            )
            raise StorageError() from exc
        return _to_record(row) if row is not None else None

    async def count(self) -> int:
        """Total rows, published or not."""
        try:
            async with self._sessions() as session:
                return (
                    await session.execute(select(func.count()).select_from(Workout))
                ).scalar_one()
        except SQLAlchemyError as exc:
            app_logging.log_error("workout_repository", "count", exc)
            raise StorageError() from exc

    # ── Writes ───────────────────────────────────────────────────────────────

    async def upsert(self, document: WorkoutDocument) -> PublishResult:
        """Insert by id, or overwrite every mutable column of the existing row."""
        values: dict[str, Any] = {
            "title": document.title,
            "time_cap_seconds": document.time_cap_seconds or 0,
            "equipment": json.dumps(document.equipment),
            "data": json.dumps(document.to_data()),
            "is_published": document.is_published,
        }
        insert = pg_insert if self.dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(Workout)
            .values(id=document.id, **values)
            .on_conflict_do_update(index_elements=[Workout.id], set_=values)
            .returning(Workout.id, Workout.is_published)
        )
        try:
            async with self._sessions() as session:
                async with session.begin():
                    row = (await session.execute(stmt)).one()
        except SQLAlchemyError as exc:
            app_logging.log_error(
                "workout_repository", "upsert", exc, {"workout_id": document.id}
            )
            raise StorageError() from exc
        return PublishResult(id=row.id, is_published=row.is_published)
