"""Tests for per-user notification preferences and the delivery log."""
from unittest.mock import AsyncMock

import pytest

from core.preferences import NotificationPreferencesService
from models.schemas import (
    DeliveryLogStatus, NotificationLogEntry, NotificationPreferences,
    NotificationPreferencesUpdate,
)


@pytest.fixture
def prefs(store):
    return NotificationPreferencesService(store)


class TestPreferences:
    @pytest.mark.asyncio
    async def test_defaults_when_none_stored(self, prefs):
        result = await prefs.get_preferences("u1")
        assert result == NotificationPreferences()
        assert result.weekly_digest is False
        assert result.email_notifications is True

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_switches(self, prefs):
        updated = await prefs.update_preferences("u1", NotificationPreferencesUpdate(comment_notifications=False))
        assert updated.comment_notifications is False
        assert updated.idea_notifications is True

        updated = await prefs.update_preferences("u1", {"weekly_digest": True})
        assert updated.comment_notifications is False
        assert updated.weekly_digest is True

        assert (await prefs.get_preferences("u1")).weekly_digest is True

    @pytest.mark.asyncio
    async def test_should_send_respects_switch(self, prefs):
        await prefs.update_preferences("u1", {"comment_notifications": False})
        assert await prefs.should_send_notification("u1", "comment_notifications") is False
        assert await prefs.should_send_notification("u1", "idea_notifications") is True

    @pytest.mark.asyncio
    async def test_global_email_switch_wins(self, prefs):
        await prefs.update_preferences("u1", {"email_notifications": False})
        assert await prefs.should_send_notification("u1", "idea_notifications") is False
        assert await prefs.should_send_notification("u1", "workspace_invites") is False

    @pytest.mark.asyncio
    async def test_weekly_digest_off_by_default(self, prefs):
        assert await prefs.should_send_notification("new-user", "weekly_digest") is False

    @pytest.mark.asyncio
    async def test_lookup_error_fails_closed(self, prefs, store):
        store.get_preferences = AsyncMock(side_effect=RuntimeError("db down"))
        assert await prefs.should_send_notification("u1", "idea_notifications") is False

    @pytest.mark.asyncio
    async def test_unknown_key_fails_closed(self, prefs):
        assert await prefs.should_send_notification("u1", "sms_notifications") is False


class TestDeliveryLog:
    @pytest.mark.asyncio
    async def test_log_and_read_back(self, prefs):
        await prefs.log_notification(NotificationLogEntry(
            user_id="u1", type="welcome", recipient_email="a@example.com",
            status=DeliveryLogStatus.SENT, subject="Welcome", provider_id="msg_1",
        ))
        [entry] = await prefs.recent_notifications("u1")
        assert entry["subject"] == "Welcome"
        assert entry["provider_id"] == "msg_1"

    @pytest.mark.asyncio
    async def test_log_errors_are_swallowed(self, prefs, store):
        store.add_log_entry = AsyncMock(side_effect=RuntimeError("db down"))
        await prefs.log_notification(NotificationLogEntry(
            user_id="u1", type="welcome", recipient_email="a@example.com",
            status=DeliveryLogStatus.FAILED,
        ))
        store.add_log_entry.assert_awaited_once()
