"""
Abstract Notification Store — Interface for all storage backends.

Implementations:
  - SqlNotificationStore      (PostgreSQL / SQLite via SQLAlchemy)
  - InMemoryNotificationStore (dict-based, single-process, no persistence)

The queue only ever mutates a job through `claim_job` and `update_job`;
nothing here deletes jobs.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from models.schemas import JobStatus, NotificationJob


class BaseNotificationStore(ABC):
    """Interface that all notification store backends must implement."""

    async def initialize(self) -> None:
        """Prepare the backend (create tables, open pools)."""

    async def close(self) -> None:
        """Release backend resources."""

    # ── Jobs ──────────────────────────────────────────────────

    @abstractmethod
    async def insert_job(self, fields: dict[str, Any]) -> NotificationJob:
        """Persist a new job row and return it with its assigned id."""
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[NotificationJob]:
        ...

    @abstractmethod
    async def fetch_due_jobs(self, now: datetime, limit: int) -> list[NotificationJob]:
        """Pending jobs with scheduled_for <= now, oldest created first."""
        ...

    @abstractmethod
    async def claim_job(self, job_id: str, now: datetime) -> bool:
        """
        Atomically move a job from pending to processing.
        Returns False when the job is no longer pending (claimed elsewhere).
        """
        ...

    @abstractmethod
    async def update_job(self, job_id: str, **fields) -> None:
        ...

    @abstractmethod
    async def list_jobs(
        self, status: Optional[JobStatus] = None, limit: int = 100,
    ) -> list[NotificationJob]:
        ...

    # ── Preferences ───────────────────────────────────────────

    @abstractmethod
    async def get_preferences(self, user_id: str) -> Optional[dict[str, bool]]:
        ...

    @abstractmethod
    async def upsert_preferences(self, user_id: str, values: dict[str, bool]) -> dict[str, bool]:
        ...

    # ── Delivery log ──────────────────────────────────────────

    @abstractmethod
    async def add_log_entry(self, entry: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def list_log_entries(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        ...
