"""
Database layer — Multi-backend persistence for the notification queue.

Backends:
  - SQL (PostgreSQL / SQLite via SQLAlchemy async)
  - In-memory (dict-based, for development/testing)

Quick start:
  from database import create_store
  store = create_store({"store_backend": "memory"})
  job = await store.get_job("abc123")
"""
from database.models import (
    Base, NotificationJobRow, NotificationPreferencesRow, NotificationLogRow,
)
from database.session import (
    create_engine_for_url, create_session_factory, session_scope, init_db,
)
from database.store_base import BaseNotificationStore
from database.store import SqlNotificationStore
from database.store_memory import InMemoryNotificationStore
from database.store_factory import create_store

__all__ = [
    # ORM models
    "Base", "NotificationJobRow", "NotificationPreferencesRow", "NotificationLogRow",
    # Session management
    "create_engine_for_url", "create_session_factory", "session_scope", "init_db",
    # Store interface
    "BaseNotificationStore",
    # Store backends
    "SqlNotificationStore", "InMemoryNotificationStore",
    # Factory
    "create_store",
]
