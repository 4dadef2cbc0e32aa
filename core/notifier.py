"""
Workspace Activity Notifier — turns workspace/idea events into queued jobs.

This is the producer side: it resolves who should hear about an event,
checks each recipient's preferences, and enqueues one job per recipient.
Nothing here sends email.
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Optional

from channels.email_service import invitation_subject
from core.preferences import NotificationPreferencesService
from job_queue.notification_queue import NotificationQueue
from models.schemas import (
    DeliveryLogStatus, IDEA_EVENT_TYPES, IdeaEvent, IdeaNotificationData,
    NotificationLogEntry, NotificationType, WorkspaceInviteData, WorkspaceMember,
    WorkspaceRole,
)

logger = structlog.get_logger()


def preference_key_for(action_type: NotificationType) -> str:
    if action_type == NotificationType.COMMENTED:
        return "comment_notifications"
    return "idea_notifications"


class WorkspaceActivityNotifier:
    """
    Usage:
        notifier = WorkspaceActivityNotifier(queue, preferences, app_url)
        job_ids = await notifier.notify_members(
            "Growth", actor, members, NotificationType.CREATED, event,
        )
    """

    def __init__(
        self,
        queue: NotificationQueue,
        preferences: NotificationPreferencesService,
        app_url: str,
    ):
        self.queue = queue
        self.preferences = preferences
        self.app_url = app_url.rstrip("/")

    def idea_url(self, idea_id: str) -> str:
        return f"{self.app_url}/ideas/{idea_id}"

    def invite_url(self, invitation_id: str) -> str:
        return f"{self.app_url}/invite/{invitation_id}"

    async def notify_members(
        self,
        workspace_name: str,
        actor: WorkspaceMember,
        members: list[WorkspaceMember],
        action_type: NotificationType,
        event: IdeaEvent,
    ) -> list[str]:
        """Queue one idea notification per opted-in member other than the actor."""
        action_type = NotificationType(action_type)
        if action_type not in IDEA_EVENT_TYPES:
            raise ValueError(f"Not an idea event type: {action_type.value}")

        recipients = [m for m in members if m.user_id != actor.user_id]
        results = await asyncio.gather(*(
            self._notify_one(m, workspace_name, actor, action_type, event)
            for m in recipients
        ))
        job_ids = [job_id for job_id in results if job_id]

        logger.info("workspace_members_notified",
                    idea_id=event.idea_id,
                    action=action_type.value,
                    recipients=len(recipients),
                    queued=len(job_ids))
        return job_ids

    async def _notify_one(
        self,
        member: WorkspaceMember,
        workspace_name: str,
        actor: WorkspaceMember,
        action_type: NotificationType,
        event: IdeaEvent,
    ) -> Optional[str]:
        key = preference_key_for(action_type)
        if not await self.preferences.should_send_notification(member.user_id, key):
            return None

        data = IdeaNotificationData(
            recipient_email=member.email,
            recipient_name=member.full_name if member.first_name else "there",
            actor_name=actor.full_name,
            actor_email=actor.email,
            idea_title=event.idea_title,
            idea_description=event.idea_description,
            workspace_name=workspace_name,
            action_type=action_type,
            action_details=event.action_details,
            idea_url=self.idea_url(event.idea_id),
            phase=event.phase,
            comment=event.comment,
        )
        return await self.queue.queue_idea_notification(action_type, data)

    async def invite_member(
        self,
        recipient_email: str,
        invitation_id: str,
        workspace_name: str,
        inviter: WorkspaceMember,
        role: WorkspaceRole | str = WorkspaceRole.MEMBER,
        recipient_name: Optional[str] = None,
        workspace_description: Optional[str] = None,
        existing_user_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Queue a workspace invitation. Existing users who turned invites off
        are skipped; people without an account always get the email.
        """
        if existing_user_id and not await self.preferences.should_send_notification(
            existing_user_id, "workspace_invites",
        ):
            logger.info("workspace_invite_suppressed", user_id=existing_user_id)
            return None

        data = WorkspaceInviteData(
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            inviter_name=inviter.full_name,
            inviter_email=inviter.email,
            workspace_name=workspace_name,
            workspace_description=workspace_description,
            role=getattr(role, "value", role),
            invite_url=self.invite_url(invitation_id),
        )
        job_id = await self.queue.queue_workspace_invite(data)
        if job_id and existing_user_id:
            await self.preferences.log_notification(NotificationLogEntry(
                user_id=existing_user_id,
                type=NotificationType.WORKSPACE_INVITE.value,
                subject=invitation_subject(data),
                recipient_email=recipient_email,
                status=DeliveryLogStatus.SENT,
                metadata={"job_id": job_id, "invitation_id": invitation_id},
            ))
        return job_id

    async def welcome_user(self, recipient_email: str, user_name: str = "there") -> Optional[str]:
        return await self.queue.queue_welcome_email(recipient_email, user_name or "there")
