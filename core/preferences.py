"""
Notification Preferences — per-user switches consulted before queueing.

A user with no stored row gets the defaults (everything on except the
weekly digest). The global `email_notifications` switch is checked first;
when it is off no per-kind switch can re-enable email.
"""
from __future__ import annotations

import structlog
from typing import Optional, Union

from database.store_base import BaseNotificationStore
from models.schemas import (
    NotificationLogEntry, NotificationPreferences, NotificationPreferencesUpdate,
)

logger = structlog.get_logger()

PREFERENCE_KEYS = tuple(NotificationPreferences.model_fields)


class NotificationPreferencesService:

    def __init__(self, store: BaseNotificationStore):
        self.store = store

    async def get_preferences(self, user_id: str) -> NotificationPreferences:
        """Stored preferences, or the defaults when the user has none. Store errors propagate."""
        stored = await self.store.get_preferences(user_id)
        if stored is None:
            return NotificationPreferences()
        return NotificationPreferences(**{k: v for k, v in stored.items() if k in PREFERENCE_KEYS})

    async def update_preferences(
        self,
        user_id: str,
        update: Union[NotificationPreferencesUpdate, dict[str, Optional[bool]]],
    ) -> NotificationPreferences:
        """Merge the given switches into the user's row; unset fields are untouched."""
        if isinstance(update, dict):
            update = NotificationPreferencesUpdate(**update)
        values = update.model_dump(exclude_none=True)
        saved = await self.store.upsert_preferences(user_id, values)
        logger.info("notification_preferences_updated", user_id=user_id, changed=sorted(values))
        return NotificationPreferences(**{k: v for k, v in saved.items() if k in PREFERENCE_KEYS})

    async def should_send_notification(self, user_id: str, preference_key: str) -> bool:
        """
        True when the user accepts email of this kind.
        Any error looking preferences up means "don't send".
        """
        if preference_key not in PREFERENCE_KEYS:
            logger.warning("unknown_preference_key", key=preference_key)
            return False
        try:
            prefs = await self.get_preferences(user_id)
        except Exception as e:
            logger.error("notification_preferences_lookup_failed", user_id=user_id, error=str(e))
            return False

        if not prefs.email_notifications:
            return False
        return bool(getattr(prefs, preference_key))

    async def log_notification(self, entry: NotificationLogEntry) -> None:
        """Append to the delivery log. Failures are logged, never raised."""
        try:
            await self.store.add_log_entry(entry.model_dump())
        except Exception as e:
            logger.error("notification_log_failed",
                         user_id=entry.user_id,
                         type=entry.type,
                         error=str(e))

    async def recent_notifications(self, user_id: str, limit: int = 50) -> list[dict]:
        return await self.store.list_log_entries(user_id, limit=limit)
