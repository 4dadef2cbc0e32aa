"""
Notification Queue — Decouples notification creation from email delivery.

- Producers ADD jobs (one insert, no network I/O)
- A processor CLAIMS due jobs and dispatches them through EmailService
- Failures are retried on a fixed 5 minute backoff, up to 3 attempts
"""
from job_queue.notification_queue import (
    BATCH_SIZE,
    MAX_ATTEMPTS,
    RETRY_DELAY,
    BatchReport,
    NotificationQueue,
    QueueEvent,
)
from job_queue.consumer import PeriodicQueueProcessor

__all__ = [
    "BATCH_SIZE",
    "MAX_ATTEMPTS",
    "RETRY_DELAY",
    "BatchReport",
    "NotificationQueue",
    "PeriodicQueueProcessor",
    "QueueEvent",
]
