"""
Tests for the type-specific email senders.

Coverage:
  Subjects:  invitation, every idea action, welcome, weekly digest
  Senders:   required-field checks, render failures, transport failures
  Dispatch:  job type → sender routing, payload validation, unknown types
"""
import pytest

from channels.base import TemplateRenderError
from channels.email_service import (
    WELCOME_SUBJECT, EmailService, digest_subject, idea_subject, invitation_subject,
)
from models.schemas import (
    DigestStats, IdeaNotificationData, NotificationJob, NotificationType,
    SendResult, WeeklyDigestData, WelcomeData,
)


def make_job(job_type, data, job_id="job_1"):
    return NotificationJob(id=job_id, type=job_type, recipient_email=data.get("recipient_email", ""), data=data)


# ══════════════════════════════════════════════════════════════
#  SUBJECT LINES
# ══════════════════════════════════════════════════════════════

class TestSubjects:
    def test_invitation_subject(self, invite_data):
        assert invitation_subject(invite_data) == "Ada Lovelace invited you to join Growth Lab on ForgeSpace"

    def test_invitation_subject_without_inviter(self, invite_data):
        data = invite_data.model_copy(update={"inviter_name": ""})
        assert invitation_subject(data).startswith("A team member invited you")

    @pytest.mark.parametrize("action,expected", [
        (NotificationType.CREATED, "New idea: Offline mode"),
        (NotificationType.UPDATED, "Idea updated: Offline mode"),
        (NotificationType.COMMENTED, "New comment on: Offline mode"),
        (NotificationType.PHASE_CHANGED, "Idea moved to inception: Offline mode"),
    ])
    def test_idea_subjects(self, idea_data, action, expected):
        assert idea_subject(idea_data.model_copy(update={"action_type": action})) == expected

    def test_welcome_subject(self):
        assert WELCOME_SUBJECT == "Welcome to ForgeSpace! 🚀"

    def test_digest_subject(self):
        data = WeeklyDigestData(
            recipient_email="a@example.com", week_start="Mar 2", week_end="Mar 8",
            stats=DigestStats(ideas_created=4, comments_added=9),
        )
        assert digest_subject(data) == "Your ForgeSpace weekly digest: 4 new ideas, 9 comments"


# ══════════════════════════════════════════════════════════════
#  SENDERS
# ══════════════════════════════════════════════════════════════

class TestSenders:
    @pytest.mark.asyncio
    async def test_invitation_is_sent(self, email_service, transport, invite_data):
        result = await email_service.send_workspace_invitation(invite_data)

        assert result.success
        [mail] = transport.sent
        assert mail["to"] == ["dana@example.com"]
        assert mail["subject"] == "Ada Lovelace invited you to join Growth Lab on ForgeSpace"
        assert mail["from"] == "ForgeSpace <noreply@forgespace.test>"
        assert mail["reply_to"] == "support@forgespace.test"
        assert "https://app.forgespace.test/invite/inv_1" in mail["html"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,error", [
        ("recipient_email", "Missing recipient email"),
        ("workspace_name", "Missing workspace name"),
        ("invite_url", "Missing invite URL"),
    ])
    async def test_invitation_required_fields(self, email_service, transport, invite_data, field, error):
        result = await email_service.send_workspace_invitation(invite_data.model_copy(update={field: ""}))
        assert not result.success
        assert result.error == error
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_idea_notification_is_sent(self, email_service, transport, idea_data):
        result = await email_service.send_idea_notification(idea_data)
        assert result.success
        assert transport.sent[0]["subject"] == "New idea: Offline mode"

    @pytest.mark.asyncio
    async def test_welcome_is_sent(self, email_service, transport):
        result = await email_service.send_welcome_email(
            WelcomeData(recipient_email="new@example.com", user_name="Grace"),
        )
        assert result.success
        assert transport.sent[0]["subject"] == WELCOME_SUBJECT
        assert "Hi Grace," in transport.sent[0]["html"]

    @pytest.mark.asyncio
    async def test_weekly_digest_is_sent(self, email_service, transport):
        data = WeeklyDigestData(
            recipient_email="a@example.com", user_name="Ada",
            week_start="Mar 2", week_end="Mar 8",
            stats=DigestStats(ideas_created=2, comments_added=1),
        )
        result = await email_service.send_weekly_digest(data)
        assert result.success
        assert "Mar 2" in transport.sent[0]["html"]

    @pytest.mark.asyncio
    async def test_transport_failure_is_returned(self, renderer, make_transport, idea_data):
        transport = make_transport(outcomes=[SendResult.failure("Invalid `to` field")])
        service = EmailService(transport, renderer)
        result = await service.send_idea_notification(idea_data)
        assert not result.success
        assert result.error == "Invalid `to` field"

    @pytest.mark.asyncio
    async def test_render_failure_is_returned(self, email_service, transport, idea_data):
        def broken(data):
            raise TemplateRenderError("idea_notification", "boom")

        email_service.renderer.render_idea_notification = broken
        result = await email_service.send_idea_notification(idea_data)

        assert not result.success
        assert "idea_notification" in result.error
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_bulk_idea_notifications(self, renderer, make_transport, idea_data):
        transport = make_transport(outcomes=[SendResult.ok("1"), SendResult.failure("bounced")])
        service = EmailService(transport, renderer)
        second = idea_data.model_copy(update={"recipient_email": "eve@example.com"})

        outcome = await service.send_bulk_idea_notifications([idea_data, second])

        assert outcome["success"] is False
        assert len(outcome["results"]) == 2
        assert sum(r.success for r in outcome["results"]) == 1

    @pytest.mark.asyncio
    async def test_bulk_all_succeed(self, email_service, idea_data):
        outcome = await email_service.send_bulk_idea_notifications([idea_data, idea_data])
        assert outcome["success"] is True


# ══════════════════════════════════════════════════════════════
#  DISPATCH
# ══════════════════════════════════════════════════════════════

class TestDispatch:
    @pytest.mark.asyncio
    async def test_routes_workspace_invite(self, email_service, transport, invite_data):
        job = make_job(NotificationType.WORKSPACE_INVITE, invite_data.model_dump(mode="json"))
        result = await email_service.dispatch(job)
        assert result.success
        assert "invited you to join" in transport.sent[0]["subject"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("job_type,prefix", [
        (NotificationType.CREATED, "New idea:"),
        (NotificationType.UPDATED, "Idea updated:"),
        (NotificationType.COMMENTED, "New comment on:"),
        (NotificationType.PHASE_CHANGED, "Idea moved to"),
    ])
    async def test_routes_idea_types(self, email_service, transport, idea_data, job_type, prefix):
        data = idea_data.model_dump(mode="json")
        del data["action_type"]
        result = await email_service.dispatch(make_job(job_type, data))
        assert result.success
        assert transport.sent[0]["subject"].startswith(prefix)

    @pytest.mark.asyncio
    async def test_routes_welcome(self, email_service, transport):
        job = make_job(NotificationType.WELCOME, {"recipient_email": "new@example.com", "user_name": "Grace"})
        result = await email_service.dispatch(job)
        assert result.success
        assert transport.sent[0]["to"] == ["new@example.com"]

    @pytest.mark.asyncio
    async def test_invalid_payload_is_failure(self, email_service, transport):
        job = make_job(NotificationType.COMMENTED, {"recipient_email": "bob@example.com"})
        result = await email_service.dispatch(job)
        assert not result.success
        assert result.error.startswith("Invalid payload:")
        assert "idea_title" in result.error
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_unknown_type_is_failure(self, email_service):
        job = NotificationJob.model_construct(
            id="job_x", type="carrier_pigeon", recipient_email="a@example.com", data={},
        )
        result = await email_service.dispatch(job)
        assert not result.success
        assert result.error == "Unknown job type"
