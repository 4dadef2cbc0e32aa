"""
InMemoryNotificationStore — Dict-backed store for development and testing.

Features:
  - Zero dependencies (no database)
  - Full interface compatibility with SqlNotificationStore
  - Claims serialized by an asyncio.Lock (single event loop)
  - All data lost on process restart

Best for: local development, unit tests, quick prototyping.
"""
from __future__ import annotations

import asyncio
import itertools
import uuid
import structlog
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Optional

from database.store_base import BaseNotificationStore
from models.schemas import JobStatus, NotificationJob, NotificationPreferences, as_utc

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


class InMemoryNotificationStore(BaseNotificationStore):
    """
    Full-featured in-memory store with the same interface as SqlNotificationStore.
    Returns copies, so callers never mutate stored state directly.
    """

    def __init__(self):
        self._jobs: dict[str, NotificationJob] = {}
        self._insert_order: dict[str, int] = {}         # id → insertion sequence
        self._seq = itertools.count()
        self._preferences: dict[str, dict[str, bool]] = {}
        self._log: dict[str, list[dict]] = defaultdict(list)   # user_id → entries
        self._lock = asyncio.Lock()
        logger.info("inmemory_store_initialized")

    # ── Jobs ──────────────────────────────────────────────

    async def insert_job(self, fields: dict[str, Any]) -> NotificationJob:
        now = _utcnow()
        job = NotificationJob(
            id=_new_id(),
            **{"created_at": now, "updated_at": now, "scheduled_for": now, **fields},
        )
        self._jobs[job.id] = job
        self._insert_order[job.id] = next(self._seq)
        return job.model_copy(deep=True)

    async def get_job(self, job_id: str) -> Optional[NotificationJob]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def fetch_due_jobs(self, now: datetime, limit: int) -> list[NotificationJob]:
        now = as_utc(now)
        due = [j for j in self._jobs.values() if j.is_due(now)]
        due.sort(key=lambda j: (j.created_at, self._insert_order[j.id]))
        return [j.model_copy(deep=True) for j in due[:limit]]

    async def claim_job(self, job_id: str, now: datetime) -> bool:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != JobStatus.PENDING:
                return False
            job.status = JobStatus.PROCESSING
            job.updated_at = as_utc(now)
            return True

    async def update_job(self, job_id: str, **fields) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        fields = {k: as_utc(v) if isinstance(v, datetime) else v for k, v in fields.items()}
        fields.setdefault("updated_at", _utcnow())
        self._jobs[job_id] = job.model_copy(update=fields)

    async def list_jobs(
        self, status: Optional[JobStatus] = None, limit: int = 100,
    ) -> list[NotificationJob]:
        jobs = [
            j for j in self._jobs.values()
            if status is None or j.status == status
        ]
        jobs.sort(key=lambda j: (j.created_at, self._insert_order[j.id]))
        return [j.model_copy(deep=True) for j in jobs[:limit]]

    # ── Preferences ───────────────────────────────────────

    async def get_preferences(self, user_id: str) -> Optional[dict[str, bool]]:
        prefs = self._preferences.get(user_id)
        return dict(prefs) if prefs is not None else None

    async def upsert_preferences(self, user_id: str, values: dict[str, bool]) -> dict[str, bool]:
        current = self._preferences.get(user_id) or NotificationPreferences().model_dump()
        current.update(values)
        self._preferences[user_id] = current
        return dict(current)

    # ── Delivery log ──────────────────────────────────────

    async def add_log_entry(self, entry: dict[str, Any]) -> None:
        self._log[entry["user_id"]].append({"id": _new_id(), **entry})

    async def list_log_entries(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        return list(self._log.get(user_id, []))[-limit:]

    # ── Stats (for debugging) ─────────────────────────────

    def stats(self) -> dict[str, int]:
        counts = {s.value: 0 for s in JobStatus}
        for job in self._jobs.values():
            counts[job.status.value] += 1
        return {
            "jobs": len(self._jobs),
            **counts,
            "preferences": len(self._preferences),
            "log_entries": sum(len(v) for v in self._log.values()),
        }
