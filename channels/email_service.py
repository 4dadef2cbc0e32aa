"""
Email Service — type-specific senders for every notification kind.

Each sender builds a deterministic subject from its payload, renders the
HTML template, and hands the result to the transport. Senders report
success or failure as a SendResult; they never retry and never raise for
bad payloads or provider errors.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ValidationError

from channels.base import EmailTransport, NotificationError
from models.schemas import (
    IDEA_EVENT_TYPES, IdeaNotificationData, NotificationJob, NotificationType,
    SendResult, WeeklyDigestData, WelcomeData, WorkspaceInviteData,
)
from templates.renderer import TemplateRenderer

logger = structlog.get_logger()

WELCOME_SUBJECT = "Welcome to ForgeSpace! 🚀"


# ── Subject lines ─────────────────────────────────────────────

def invitation_subject(data: WorkspaceInviteData) -> str:
    inviter = data.inviter_name or "A team member"
    return f"{inviter} invited you to join {data.workspace_name} on ForgeSpace"


def idea_subject(data: IdeaNotificationData) -> str:
    action = data.action_type
    if action == NotificationType.CREATED:
        return f"New idea: {data.idea_title}"
    if action == NotificationType.UPDATED:
        return f"Idea updated: {data.idea_title}"
    if action == NotificationType.COMMENTED:
        return f"New comment on: {data.idea_title}"
    if action == NotificationType.PHASE_CHANGED:
        return f"Idea moved to {data.phase}: {data.idea_title}"
    return f"Update on: {data.idea_title}"


def digest_subject(data: WeeklyDigestData) -> str:
    return (
        f"Your ForgeSpace weekly digest: {data.stats.ideas_created} new ideas, "
        f"{data.stats.comments_added} comments"
    )


def _validation_message(e: ValidationError) -> str:
    missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
    return f"Invalid payload: {', '.join(missing)}"


class EmailService:
    """
    Renders and sends notification emails through an EmailTransport.

    Usage:
        service = EmailService(transport, TemplateRenderer(app_url))
        result = await service.dispatch(job)
    """

    def __init__(
        self,
        transport: EmailTransport,
        renderer: TemplateRenderer,
        from_address: Optional[str] = None,
        reply_to: Optional[str] = None,
    ):
        self.transport = transport
        self.renderer = renderer
        self.from_address = from_address
        self.reply_to = reply_to

    async def send_email(self, to: str | list[str], subject: str, html: str) -> SendResult:
        return await self.transport.send(
            to, subject, html,
            reply_to=self.reply_to,
            from_address=self.from_address,
        )

    async def _render_and_send(
        self, kind: str, to: str, subject: str, render: Callable[[], str],
    ) -> SendResult:
        try:
            html = render()
        except NotificationError as e:
            logger.error("email_render_failed", kind=kind, to=to, error=str(e))
            return SendResult.failure(str(e))
        return await self.send_email(to, subject, html)

    # ── Type-specific senders ─────────────────────────────────

    async def send_workspace_invitation(self, data: WorkspaceInviteData) -> SendResult:
        if not data.recipient_email:
            return SendResult.failure("Missing recipient email")
        if not data.workspace_name:
            return SendResult.failure("Missing workspace name")
        if not data.invite_url:
            return SendResult.failure("Missing invite URL")
        return await self._render_and_send(
            "workspace_invite", data.recipient_email, invitation_subject(data),
            lambda: self.renderer.render_workspace_invitation(data),
        )

    async def send_idea_notification(self, data: IdeaNotificationData) -> SendResult:
        return await self._render_and_send(
            data.action_type.value, data.recipient_email, idea_subject(data),
            lambda: self.renderer.render_idea_notification(data),
        )

    async def send_welcome_email(self, data: WelcomeData) -> SendResult:
        return await self._render_and_send(
            "welcome", data.recipient_email, WELCOME_SUBJECT,
            lambda: self.renderer.render_welcome(data),
        )

    async def send_weekly_digest(self, data: WeeklyDigestData) -> SendResult:
        return await self._render_and_send(
            "weekly_digest", data.recipient_email, digest_subject(data),
            lambda: self.renderer.render_weekly_digest(data),
        )

    async def send_bulk_idea_notifications(
        self, notifications: list[IdeaNotificationData],
    ) -> dict[str, Any]:
        """Send many idea notifications concurrently; success only if all succeed."""
        results = await asyncio.gather(
            *(self.send_idea_notification(n) for n in notifications)
        )
        return {
            "success": all(r.success for r in results),
            "results": list(results),
        }

    # ── Job dispatch ──────────────────────────────────────────

    async def dispatch(self, job: NotificationJob) -> SendResult:
        """Map a queued job to exactly one sender by its type."""
        route = self._route(job.type)
        if route is None:
            return SendResult.failure("Unknown job type")
        model, sender = route
        payload = dict(job.data)
        if job.type in IDEA_EVENT_TYPES:
            payload.setdefault("action_type", job.type.value)
        try:
            data = model.model_validate(payload)
        except ValidationError as e:
            logger.warning("job_payload_invalid", job_id=job.id, type=job.type.value, error=str(e))
            return SendResult.failure(_validation_message(e))
        return await sender(data)

    def _route(
        self, job_type: NotificationType,
    ) -> Optional[tuple[type[BaseModel], Callable[[Any], Awaitable[SendResult]]]]:
        if job_type == NotificationType.WORKSPACE_INVITE:
            return WorkspaceInviteData, self.send_workspace_invitation
        if job_type in IDEA_EVENT_TYPES:
            return IdeaNotificationData, self.send_idea_notification
        if job_type == NotificationType.WELCOME:
            return WelcomeData, self.send_welcome_email
        return None
