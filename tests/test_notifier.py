"""Tests for the producers: workspace fan-out, invitations and welcome emails."""
import pytest

from core.notifier import WorkspaceActivityNotifier, preference_key_for
from core.preferences import NotificationPreferencesService
from models.schemas import IdeaEvent, JobStatus, NotificationType, WorkspaceMember


@pytest.fixture
def prefs(store):
    return NotificationPreferencesService(store)


@pytest.fixture
def notifier(queue, prefs):
    return WorkspaceActivityNotifier(queue, prefs, "https://app.forgespace.test/")


@pytest.fixture
def actor():
    return WorkspaceMember(user_id="u_ada", email="ada@example.com", first_name="Ada", last_name="Lovelace")


@pytest.fixture
def members(actor):
    return [
        actor,
        WorkspaceMember(user_id="u_bob", email="bob@example.com", first_name="Bob", last_name="Stone"),
        WorkspaceMember(user_id="u_eve", email="eve@example.com"),
    ]


@pytest.fixture
def event():
    return IdeaEvent(
        idea_id="idea_42",
        idea_title="Offline mode",
        idea_description="Drafts on the train",
        phase="refinement",
    )


def test_preference_key_for():
    assert preference_key_for(NotificationType.COMMENTED) == "comment_notifications"
    assert preference_key_for(NotificationType.CREATED) == "idea_notifications"
    assert preference_key_for(NotificationType.PHASE_CHANGED) == "idea_notifications"


class TestNotifyMembers:
    @pytest.mark.asyncio
    async def test_fans_out_excluding_actor(self, notifier, store, actor, members, event):
        job_ids = await notifier.notify_members("Growth Lab", actor, members, NotificationType.CREATED, event)

        assert len(job_ids) == 2
        jobs = [await store.get_job(j) for j in job_ids]
        assert sorted(j.recipient_email for j in jobs) == ["bob@example.com", "eve@example.com"]
        assert all(j.type == NotificationType.CREATED and j.status == JobStatus.PENDING for j in jobs)

        bob = next(j for j in jobs if j.recipient_email == "bob@example.com")
        assert bob.data["recipient_name"] == "Bob Stone"
        assert bob.data["actor_name"] == "Ada Lovelace"
        assert bob.data["idea_url"] == "https://app.forgespace.test/ideas/idea_42"
        assert bob.data["workspace_name"] == "Growth Lab"

        eve = next(j for j in jobs if j.recipient_email == "eve@example.com")
        assert eve.data["recipient_name"] == "there"

    @pytest.mark.asyncio
    async def test_comment_preference_is_honoured(self, notifier, prefs, actor, members, event):
        await prefs.update_preferences("u_bob", {"comment_notifications": False})
        commented = event.model_copy(update={"comment": "Love it"})

        comment_jobs = await notifier.notify_members("Growth Lab", actor, members, NotificationType.COMMENTED, commented)
        idea_jobs = await notifier.notify_members("Growth Lab", actor, members, NotificationType.UPDATED, event)

        assert len(comment_jobs) == 1
        assert len(idea_jobs) == 2

    @pytest.mark.asyncio
    async def test_idea_preference_is_honoured(self, notifier, prefs, actor, members, event):
        await prefs.update_preferences("u_eve", {"idea_notifications": False})
        job_ids = await notifier.notify_members("Growth Lab", actor, members, NotificationType.PHASE_CHANGED, event)
        assert len(job_ids) == 1

    @pytest.mark.asyncio
    async def test_rejects_non_idea_type(self, notifier, actor, members, event):
        with pytest.raises(ValueError):
            await notifier.notify_members("Growth Lab", actor, members, NotificationType.WELCOME, event)

    @pytest.mark.asyncio
    async def test_queued_jobs_dispatch(self, notifier, queue, transport, actor, members, event):
        await notifier.notify_members("Growth Lab", actor, members, NotificationType.CREATED, event)
        report = await queue.process_pending_jobs()
        assert len(report.completed) == 2
        assert {m["subject"] for m in transport.sent} == {"New idea: Offline mode"}


class TestInviteAndWelcome:
    @pytest.mark.asyncio
    async def test_invite_new_user(self, notifier, store, actor):
        job_id = await notifier.invite_member(
            "dana@example.com", "inv_9", "Growth Lab", actor, role="viewer",
        )
        job = await store.get_job(job_id)
        assert job.type == NotificationType.WORKSPACE_INVITE
        assert job.data["invite_url"] == "https://app.forgespace.test/invite/inv_9"
        assert job.data["role"] == "viewer"
        assert job.data["inviter_name"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_invite_existing_user_opted_out(self, notifier, prefs, actor):
        await prefs.update_preferences("u_dana", {"workspace_invites": False})
        job_id = await notifier.invite_member(
            "dana@example.com", "inv_9", "Growth Lab", actor, existing_user_id="u_dana",
        )
        assert job_id is None

    @pytest.mark.asyncio
    async def test_invite_existing_user_is_logged(self, notifier, prefs, actor):
        job_id = await notifier.invite_member(
            "dana@example.com", "inv_9", "Growth Lab", actor, existing_user_id="u_dana",
        )

        [entry] = await prefs.recent_notifications("u_dana")
        assert entry["type"] == "workspace_invite"
        assert entry["status"] == "sent"
        assert entry["recipient_email"] == "dana@example.com"
        assert entry["subject"] == "Ada Lovelace invited you to join Growth Lab on ForgeSpace"
        assert entry["metadata"] == {"job_id": job_id, "invitation_id": "inv_9"}

    @pytest.mark.asyncio
    async def test_invite_new_user_is_not_logged(self, notifier, store, actor):
        await notifier.invite_member("dana@example.com", "inv_9", "Growth Lab", actor)
        assert await store.list_log_entries("u_dana") == []

    @pytest.mark.asyncio
    async def test_welcome_user(self, notifier, store):
        job_id = await notifier.welcome_user("new@example.com", "Grace")
        job = await store.get_job(job_id)
        assert job.type == NotificationType.WELCOME
        assert job.data["user_name"] == "Grace"
