"""Shared test fixtures for the ForgeSpace notification service."""
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from channels.base import EmailTransport
from channels.email_service import EmailService
from database.store_memory import InMemoryNotificationStore
from job_queue.notification_queue import NotificationQueue
from models.schemas import (
    IdeaNotificationData, NotificationType, SendResult, WorkspaceInviteData,
)
from templates.renderer import TemplateRenderer


START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock. Each read advances by `tick` so created_at values stay distinct."""

    def __init__(self, start: datetime = START, tick: timedelta = timedelta(milliseconds=1)):
        self.now = start
        self.tick = tick

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.tick
        return current

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingTransport(EmailTransport):
    """Captures outgoing mail; `outcomes` scripts results (SendResult or Exception) per call."""

    provider = "recording"

    def __init__(self, outcomes: Optional[list] = None):
        super().__init__()
        self.sent: list[dict] = []
        self.outcomes = list(outcomes or [])

    async def _do_send(self, to, subject, html, reply_to, from_address) -> SendResult:
        self.sent.append({
            "to": to, "subject": subject, "html": html,
            "reply_to": reply_to, "from": from_address,
        })
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return SendResult.ok(message_id=f"msg_{len(self.sent)}")


class ScriptedDispatcher:
    """Dispatcher double: returns (or raises) scripted outcomes and records every job it saw."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def dispatch(self, job):
        self.calls.append(job)
        outcome = self.outcomes.pop(0) if self.outcomes else SendResult.ok("msg")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryNotificationStore()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def renderer():
    return TemplateRenderer(app_url="https://app.forgespace.test")


@pytest.fixture
def email_service(transport, renderer):
    return EmailService(
        transport, renderer,
        from_address="ForgeSpace <noreply@forgespace.test>",
        reply_to="support@forgespace.test",
    )


@pytest.fixture
def queue(store, email_service, clock):
    return NotificationQueue(store, email_service, clock=clock)


@pytest.fixture
def invite_data():
    return WorkspaceInviteData(
        recipient_email="dana@example.com",
        recipient_name="Dana",
        inviter_name="Ada Lovelace",
        inviter_email="ada@example.com",
        workspace_name="Growth Lab",
        workspace_description="Experiments for Q3",
        role="admin",
        invite_url="https://app.forgespace.test/invite/inv_1",
    )


@pytest.fixture
def idea_data():
    return IdeaNotificationData(
        recipient_email="bob@example.com",
        recipient_name="Bob Stone",
        actor_name="Ada Lovelace",
        actor_email="ada@example.com",
        idea_title="Offline mode",
        idea_description="Let people draft ideas on the train",
        workspace_name="Growth Lab",
        action_type=NotificationType.CREATED,
        idea_url="https://app.forgespace.test/ideas/idea_1",
        phase="inception",
    )


@pytest.fixture
def make_dispatcher():
    return ScriptedDispatcher


@pytest.fixture
def make_transport():
    return RecordingTransport
