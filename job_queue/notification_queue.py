"""
Notification Queue — table-backed job list with fixed-backoff retry.

Producers call add_job (or a typed helper) when a domain event happens;
the call is a single insert and never dispatches. process_pending_jobs is
invoked periodically (cron route, CLI runner or PeriodicQueueProcessor):

  pending ──claim──▶ processing ──send ok──▶ completed
     ▲                    │
     │   attempts < max   │ send failed / raised
     └──── +5 minutes ────┤
                          └── attempts == max ──▶ failed

Job Schema:
  {
      "id":              assigned by the store on insert,
      "type":            workspace_invite | created | updated | commented
                         | phase_changed | welcome,
      "recipient_email": destination address,
      "data":            payload whose shape depends on type,
      "status":          pending | processing | completed | failed,
      "attempts":        failed processing attempts so far,
      "max_attempts":    ceiling before the job is marked failed,
      "scheduled_for":   not eligible for dispatch before this time,
      "error_message":   last failure reason,
  }

A claim is a conditional pending → processing update, so overlapping
processor runs dispatch each job at most once per attempt.
"""
from __future__ import annotations

import asyncio
import inspect
import structlog
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol, Union

from pydantic import BaseModel

from database.store_base import BaseNotificationStore
from models.schemas import (
    IDEA_EVENT_TYPES, IdeaNotificationData, JobStatus, NotificationJob,
    NotificationType, SendResult, WelcomeData, WorkspaceInviteData, as_utc, utcnow,
)

logger = structlog.get_logger()

MAX_ATTEMPTS = 3
RETRY_DELAY = timedelta(minutes=5)
BATCH_SIZE = 10


class JobDispatcher(Protocol):
    async def dispatch(self, job: NotificationJob) -> SendResult:
        ...


# ──────────────────────────────────────────────────────────────
#  Events & reports
# ──────────────────────────────────────────────────────────────

class QueueEvent:
    ENQUEUED = "enqueued"
    CLAIMED = "claimed"
    COMPLETED = "completed"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"


JobListener = Callable[[str, NotificationJob], Any]


@dataclass
class BatchReport:
    """What one process_pending_jobs call did, by job id."""
    selected: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    retried: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)    # claim lost to another run
    errored: list[str] = field(default_factory=list)    # store error after claim

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ──────────────────────────────────────────────────────────────
#  Queue
# ──────────────────────────────────────────────────────────────

class NotificationQueue:
    """
    Producer API and processor over a BaseNotificationStore.

    Usage:
        queue = NotificationQueue(store, email_service)
        job_id = await queue.queue_welcome_email("user@example.com", "Ada")
        report = await queue.process_pending_jobs()
    """

    def __init__(
        self,
        store: BaseNotificationStore,
        dispatcher: JobDispatcher,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self._clock = clock
        self._listeners: list[JobListener] = []

    # ── Observability ─────────────────────────────────────────

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        """Register a (sync or async) listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    async def _emit(self, event: str, job: NotificationJob):
        for listener in list(self._listeners):
            try:
                result = listener(event, job)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("queue_listener_error", queue_event=event, job_id=job.id, error=str(e))

    async def get_job_status(self, job_id: str) -> Optional[NotificationJob]:
        return await self.store.get_job(job_id)

    # ── Producer side ─────────────────────────────────────────

    async def add_job(
        self,
        job_type: Union[NotificationType, str],
        recipient_email: str,
        data: Union[BaseModel, dict[str, Any]],
        scheduled_for: Optional[datetime] = None,
    ) -> Optional[str]:
        """
        Persist a new pending job. Returns its id, or None if the insert
        failed. Never dispatches and never raises.
        """
        try:
            now = self._clock()
            payload = data.model_dump(mode="json") if isinstance(data, BaseModel) else dict(data)
            job = await self.store.insert_job({
                "type": NotificationType(job_type),
                "recipient_email": recipient_email,
                "data": payload,
                "status": JobStatus.PENDING,
                "attempts": 0,
                "max_attempts": MAX_ATTEMPTS,
                "scheduled_for": as_utc(scheduled_for) if scheduled_for else now,
                "created_at": now,
                "updated_at": now,
            })
        except Exception as e:
            logger.error("notification_job_add_failed",
                         type=str(getattr(job_type, "value", job_type)),
                         recipient=recipient_email,
                         error=str(e))
            return None

        logger.info("notification_job_added",
                    job_id=job.id,
                    type=job.type.value,
                    recipient=recipient_email)
        await self._emit(QueueEvent.ENQUEUED, job)
        return job.id

    async def queue_workspace_invite(self, data: WorkspaceInviteData) -> Optional[str]:
        return await self.add_job(NotificationType.WORKSPACE_INVITE, data.recipient_email, data)

    async def queue_idea_notification(
        self, job_type: NotificationType, data: IdeaNotificationData,
    ) -> Optional[str]:
        job_type = NotificationType(job_type)
        if job_type not in IDEA_EVENT_TYPES:
            raise ValueError(f"Not an idea event type: {job_type.value}")
        return await self.add_job(job_type, data.recipient_email, data)

    async def queue_welcome_email(self, recipient_email: str, user_name: str) -> Optional[str]:
        data = WelcomeData(recipient_email=recipient_email, user_name=user_name)
        return await self.add_job(NotificationType.WELCOME, recipient_email, data)

    # ── Processor side ────────────────────────────────────────

    async def process_job(self, job: NotificationJob) -> str:
        """
        Claim, dispatch and record the outcome of one job.
        Returns the outcome: completed | retried | failed | skipped.
        """
        if not await self.store.claim_job(job.id, self._clock()):
            logger.info("notification_job_claim_lost", job_id=job.id)
            return "skipped"
        job = job.model_copy(update={"status": JobStatus.PROCESSING})
        await self._emit(QueueEvent.CLAIMED, job)

        try:
            result = await self.dispatcher.dispatch(job)
        except Exception as e:
            logger.error("notification_dispatch_error",
                         job_id=job.id,
                         type=job.type.value,
                         error=str(e),
                         exc_info=True)
            result = SendResult.failure(str(e) or type(e).__name__)

        now = self._clock()
        if result.success:
            await self.store.update_job(job.id, status=JobStatus.COMPLETED, updated_at=now)
            logger.info("notification_job_completed", job_id=job.id, type=job.type.value)
            await self._emit(QueueEvent.COMPLETED, job.model_copy(
                update={"status": JobStatus.COMPLETED, "updated_at": now},
            ))
            return "completed"

        attempts = job.attempts + 1
        error = result.error or "Unknown error"

        if attempts < job.max_attempts:
            retry_at = now + RETRY_DELAY
            changes = {
                "status": JobStatus.PENDING,
                "attempts": attempts,
                "scheduled_for": retry_at,
                "error_message": error,
                "updated_at": now,
            }
            await self.store.update_job(job.id, **changes)
            logger.warning("notification_job_retry_scheduled",
                           job_id=job.id,
                           attempt=attempts,
                           scheduled_for=retry_at.isoformat(),
                           error=error)
            await self._emit(QueueEvent.RETRY_SCHEDULED, job.model_copy(update=changes))
            return "retried"

        changes = {
            "status": JobStatus.FAILED,
            "attempts": attempts,
            "error_message": error,
            "updated_at": now,
        }
        await self.store.update_job(job.id, **changes)
        logger.error("notification_job_failed",
                     job_id=job.id,
                     attempts=attempts,
                     error=error)
        await self._emit(QueueEvent.FAILED, job.model_copy(update=changes))
        return "failed"

    async def process_pending_jobs(self) -> BatchReport:
        """
        Process up to BATCH_SIZE due jobs, oldest first, concurrently.
        One job failing never fails the batch.
        """
        report = BatchReport()
        try:
            jobs = await self.store.fetch_due_jobs(self._clock(), BATCH_SIZE)
        except Exception as e:
            logger.error("notification_fetch_failed", error=str(e))
            return report

        if not jobs:
            return report

        report.selected = [j.id for j in jobs]
        logger.info("processing_notification_jobs", count=len(jobs))

        outcomes = await asyncio.gather(
            *(self.process_job(job) for job in jobs),
            return_exceptions=True,
        )
        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("notification_job_processing_error",
                             job_id=job.id,
                             error=str(outcome))
                report.errored.append(job.id)
            else:
                getattr(report, outcome).append(job.id)

        logger.info("notification_batch_processed",
                    completed=len(report.completed),
                    retried=len(report.retried),
                    failed=len(report.failed),
                    skipped=len(report.skipped),
                    errored=len(report.errored))
        return report
