"""
Core data models for the ForgeSpace notification service.
These are the universal types shared across all modules.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive values are taken as UTC; aware values are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class NotificationType(str, Enum):
    WORKSPACE_INVITE = "workspace_invite"
    CREATED = "created"
    UPDATED = "updated"
    COMMENTED = "commented"
    PHASE_CHANGED = "phase_changed"
    WELCOME = "welcome"


IDEA_EVENT_TYPES = frozenset({
    NotificationType.CREATED,
    NotificationType.UPDATED,
    NotificationType.COMMENTED,
    NotificationType.PHASE_CHANGED,
})


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class IdeaPhase(str, Enum):
    INCEPTION = "inception"
    REFINEMENT = "refinement"
    PLANNING = "planning"
    EXECUTION_READY = "execution_ready"


class WorkspaceRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class DeliveryLogStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    BOUNCED = "bounced"
    OPENED = "opened"
    CLICKED = "clicked"


# ──────────────────────────────────────────────────────────────
#  Payloads: the `data` of a job, shape depends on its type
# ──────────────────────────────────────────────────────────────

class WorkspaceInviteData(BaseModel):
    recipient_email: str
    recipient_name: Optional[str] = None
    inviter_name: str = ""
    inviter_email: str = ""
    workspace_name: str
    workspace_description: Optional[str] = None
    role: str = WorkspaceRole.MEMBER.value
    invite_url: str


class IdeaNotificationData(BaseModel):
    recipient_email: str
    recipient_name: str = "there"
    actor_name: str
    actor_email: str
    idea_title: str
    idea_description: str = ""
    workspace_name: str
    action_type: NotificationType
    action_details: Optional[str] = None
    idea_url: str
    phase: Optional[str] = None
    comment: Optional[str] = None


class WelcomeData(BaseModel):
    recipient_email: str
    user_name: str = "there"


class DigestStats(BaseModel):
    ideas_created: int = 0
    ideas_updated: int = 0
    comments_added: int = 0
    workspaces_active: int = 0


class DigestIdea(BaseModel):
    title: str
    workspace: str
    phase: str
    url: str


class DigestWorkspace(BaseModel):
    name: str
    activity: int
    url: str


class WeeklyDigestData(BaseModel):
    recipient_email: str
    user_name: str = "there"
    week_start: str
    week_end: str
    stats: DigestStats = Field(default_factory=DigestStats)
    recent_ideas: list[DigestIdea] = []
    top_workspaces: list[DigestWorkspace] = []


# ──────────────────────────────────────────────────────────────
#  Queue
# ──────────────────────────────────────────────────────────────

class NotificationJob(BaseModel):
    """One queued notification delivery record."""
    id: str
    type: NotificationType
    recipient_email: str
    data: dict[str, Any] = {}
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    scheduled_for: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    error_message: Optional[str] = None

    @field_validator("scheduled_for", "created_at", "updated_at")
    @classmethod
    def _normalize_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def is_due(self, now: datetime) -> bool:
        return self.status == JobStatus.PENDING and self.scheduled_for <= now


class SendResult(BaseModel):
    """Outcome of one dispatch, as reported by a sender or transport."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message_id: Optional[str] = None) -> SendResult:
        return cls(success=True, message_id=message_id)

    @classmethod
    def failure(cls, error: str) -> SendResult:
        return cls(success=False, error=error)


# ──────────────────────────────────────────────────────────────
#  Preferences & delivery log
# ──────────────────────────────────────────────────────────────

class NotificationPreferences(BaseModel):
    email_notifications: bool = True
    push_notifications: bool = True
    idea_notifications: bool = True
    comment_notifications: bool = True
    mention_notifications: bool = True
    weekly_digest: bool = False
    workspace_invites: bool = True


class NotificationPreferencesUpdate(BaseModel):
    """Partial update — only fields that are set are applied."""
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    idea_notifications: Optional[bool] = None
    comment_notifications: Optional[bool] = None
    mention_notifications: Optional[bool] = None
    weekly_digest: Optional[bool] = None
    workspace_invites: Optional[bool] = None


class NotificationLogEntry(BaseModel):
    user_id: str
    type: str
    recipient_email: str
    status: DeliveryLogStatus
    subject: Optional[str] = None
    provider_id: Optional[str] = None
    metadata: dict[str, Any] = {}
    created_at: datetime = Field(default_factory=utcnow)


# ──────────────────────────────────────────────────────────────
#  Producer inputs
# ──────────────────────────────────────────────────────────────

class WorkspaceMember(BaseModel):
    """A member as seen by the producers: profile fields only."""
    user_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: WorkspaceRole = WorkspaceRole.MEMBER

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class IdeaEvent(BaseModel):
    idea_id: str
    idea_title: str
    idea_description: str = ""
    phase: Optional[str] = None
    comment: Optional[str] = None
    action_details: Optional[str] = None
