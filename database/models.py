"""
SQLAlchemy ORM models — Cross-database compatible.

Supports: PostgreSQL (Supabase), SQLite.

Key design decisions:
  - JSON type instead of PostgreSQL-specific JSONB — on PG the dialect maps
    JSON to jsonb automatically; on SQLite it serializes to TEXT.
  - String primary keys (uuid hex) — no database-specific sequences.
  - All timestamps are written as UTC.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    String, Integer, Boolean, DateTime, Text, Index, JSON,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


# ──────────────────────────────────────────────────────────────
#  Notification queue
# ──────────────────────────────────────────────────────────────

class NotificationJobRow(Base):
    __tablename__ = "notification_queue"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(320), nullable=False)
    data: Mapped[Any] = mapped_column(JSON, default=dict)

    status: Mapped[str] = mapped_column(String(16), default="pending")
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    scheduled_for: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_notification_queue_due", "status", "scheduled_for"),
        Index("ix_notification_queue_recipient", "recipient_email"),
        Index("ix_notification_queue_created", "created_at"),
    )


# ──────────────────────────────────────────────────────────────
#  Preferences
# ──────────────────────────────────────────────────────────────

class NotificationPreferencesRow(Base):
    __tablename__ = "user_notification_preferences"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    push_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    idea_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    comment_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    mention_notifications: Mapped[bool] = mapped_column(Boolean, default=True)
    weekly_digest: Mapped[bool] = mapped_column(Boolean, default=False)
    workspace_invites: Mapped[bool] = mapped_column(Boolean, default=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "email_notifications": self.email_notifications,
            "push_notifications": self.push_notifications,
            "idea_notifications": self.idea_notifications,
            "comment_notifications": self.comment_notifications,
            "mention_notifications": self.mention_notifications,
            "weekly_digest": self.weekly_digest,
            "workspace_invites": self.workspace_invites,
        }


# ──────────────────────────────────────────────────────────────
#  Delivery log
# ──────────────────────────────────────────────────────────────

class NotificationLogRow(Base):
    __tablename__ = "notification_log"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    recipient_email: Mapped[str] = mapped_column(String(320), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    provider_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    metadata_: Mapped[Any] = mapped_column("metadata", JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_notification_log_user", "user_id"),
    )
