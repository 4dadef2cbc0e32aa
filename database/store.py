"""
SqlNotificationStore — Portable SQL queries for PostgreSQL and SQLite.

The store owns its engine and session factory; construct one per process
(or per test) and pass it to the queue explicitly.
"""
from __future__ import annotations

import structlog
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from database.models import (
    NotificationJobRow, NotificationPreferencesRow, NotificationLogRow,
)
from database.session import (
    create_engine_for_url, create_session_factory, session_scope, init_db,
)
from database.store_base import BaseNotificationStore
from models.schemas import JobStatus, NotificationJob, NotificationPreferences, as_utc

logger = structlog.get_logger()


def _column_value(value: Any) -> Any:
    """Enums become their values; datetimes are stored as UTC."""
    if isinstance(value, datetime):
        return as_utc(value)
    return getattr(value, "value", value)


class SqlNotificationStore(BaseNotificationStore):
    """
    Persistent notification store backed by any SQLAlchemy-supported database.
    Works with PostgreSQL (Supabase) and SQLite.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] = None,
        create_tables: bool = True,
    ):
        self._engine = engine
        self._session_factory = session_factory or create_session_factory(engine)
        self._create_tables = create_tables

    @classmethod
    def from_url(cls, db_url: str, echo: bool = False, create_tables: bool = True) -> SqlNotificationStore:
        return cls(create_engine_for_url(db_url, echo=echo), create_tables=create_tables)

    async def initialize(self) -> None:
        if self._create_tables:
            await init_db(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("database_closed")

    def _session(self):
        return session_scope(self._session_factory)

    # ── Job operations ─────────────────────────────────────

    async def insert_job(self, fields: dict[str, Any]) -> NotificationJob:
        values = {k: _column_value(v) for k, v in fields.items()}
        async with self._session() as db:
            row = NotificationJobRow(**values)
            db.add(row)
            await db.flush()
            return self._row_to_job(row)

    async def get_job(self, job_id: str) -> Optional[NotificationJob]:
        async with self._session() as db:
            row = await db.get(NotificationJobRow, job_id)
            return self._row_to_job(row) if row else None

    async def fetch_due_jobs(self, now: datetime, limit: int) -> list[NotificationJob]:
        async with self._session() as db:
            stmt = (
                select(NotificationJobRow)
                .where(and_(
                    NotificationJobRow.status == JobStatus.PENDING.value,
                    NotificationJobRow.scheduled_for <= as_utc(now),
                ))
                .order_by(NotificationJobRow.created_at.asc())
                .limit(limit)
            )
            result = await db.execute(stmt)
            return [self._row_to_job(r) for r in result.scalars().all()]

    async def claim_job(self, job_id: str, now: datetime) -> bool:
        """Conditional UPDATE ... WHERE status = 'pending' — acts as a CAS."""
        async with self._session() as db:
            stmt = (
                update(NotificationJobRow)
                .where(and_(
                    NotificationJobRow.id == job_id,
                    NotificationJobRow.status == JobStatus.PENDING.value,
                ))
                .values(status=JobStatus.PROCESSING.value, updated_at=as_utc(now))
            )
            result = await db.execute(stmt)
            return result.rowcount == 1

    async def update_job(self, job_id: str, **fields) -> None:
        values = {k: _column_value(v) for k, v in fields.items()}
        values.setdefault("updated_at", datetime.now(timezone.utc))
        async with self._session() as db:
            stmt = (
                update(NotificationJobRow)
                .where(NotificationJobRow.id == job_id)
                .values(**values)
            )
            await db.execute(stmt)

    async def list_jobs(
        self, status: Optional[JobStatus] = None, limit: int = 100,
    ) -> list[NotificationJob]:
        async with self._session() as db:
            stmt = select(NotificationJobRow)
            if status is not None:
                stmt = stmt.where(NotificationJobRow.status == _column_value(status))
            stmt = stmt.order_by(NotificationJobRow.created_at.asc()).limit(limit)
            result = await db.execute(stmt)
            return [self._row_to_job(r) for r in result.scalars().all()]

    # ── Preference operations ──────────────────────────────

    async def get_preferences(self, user_id: str) -> Optional[dict[str, bool]]:
        async with self._session() as db:
            row = await db.get(NotificationPreferencesRow, user_id)
            return row.to_dict() if row else None

    async def upsert_preferences(self, user_id: str, values: dict[str, bool]) -> dict[str, bool]:
        async with self._session() as db:
            row = await db.get(NotificationPreferencesRow, user_id)
            if row is None:
                row = NotificationPreferencesRow(
                    user_id=user_id,
                    **{**NotificationPreferences().model_dump(), **values},
                )
                db.add(row)
            else:
                for k, v in values.items():
                    setattr(row, k, v)
            await db.flush()
            return row.to_dict()

    # ── Delivery log ───────────────────────────────────────

    async def add_log_entry(self, entry: dict[str, Any]) -> None:
        data = {k: _column_value(v) for k, v in entry.items()}
        metadata = data.pop("metadata", None) or {}
        async with self._session() as db:
            db.add(NotificationLogRow(metadata_=metadata, **data))

    async def list_log_entries(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        async with self._session() as db:
            stmt = (
                select(NotificationLogRow)
                .where(NotificationLogRow.user_id == user_id)
                .order_by(NotificationLogRow.created_at.desc())
                .limit(limit)
            )
            result = await db.execute(stmt)
            rows = result.scalars().all()
            return [
                {
                    "id": r.id, "user_id": r.user_id, "type": r.type,
                    "subject": r.subject, "recipient_email": r.recipient_email,
                    "status": r.status, "provider_id": r.provider_id,
                    "metadata": r.metadata_,
                    "created_at": as_utc(r.created_at),
                }
                for r in reversed(rows)
            ]

    # ── Converters ─────────────────────────────────────────

    @staticmethod
    def _row_to_job(row: NotificationJobRow) -> NotificationJob:
        return NotificationJob(
            id=row.id,
            type=row.type,
            recipient_email=row.recipient_email,
            data=row.data or {},
            status=row.status,
            attempts=row.attempts,
            max_attempts=row.max_attempts,
            scheduled_for=as_utc(row.scheduled_for),
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
            error_message=row.error_message,
        )
