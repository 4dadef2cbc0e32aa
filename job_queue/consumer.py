"""
Queue Processor Loop — runs process_pending_jobs on a fixed interval.

Used when there is no external scheduler hitting the cron route
(local development, a single worker process). Overlapping runs from
several processes are safe: each job is claimed before it is sent.

Topology:
  ┌──────────────┐       ┌──────────────────┐       ┌──────────────────┐
  │  Producers   │──add──▶│ notification_    │◀─────│ Periodic         │
  │  (notifier)  │       │ queue table       │ poll │ QueueProcessor   │
  └──────────────┘       └──────────────────┘       └────────┬─────────┘
                                  ▲                          │ dispatch
                                  │ retry in 5 minutes       ▼
                                  └─────────────────── EmailService
"""
from __future__ import annotations

import asyncio
import structlog
from typing import Optional

from job_queue.notification_queue import BatchReport, NotificationQueue

logger = structlog.get_logger()


class PeriodicQueueProcessor:
    """
    Background task that drains due notification jobs every interval.

    Usage:
        processor = PeriodicQueueProcessor(queue, interval_seconds=60)
        await processor.start_background()
        ...
        await processor.stop()
    """

    def __init__(self, queue: NotificationQueue, interval_seconds: float = 60):
        self.queue = queue
        self.interval = interval_seconds
        self.runs = 0
        self.last_report: Optional[BatchReport] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> BatchReport:
        report = await self.queue.process_pending_jobs()
        self.runs += 1
        self.last_report = report
        return report

    async def start(self):
        """Run forever; blocks until cancelled."""
        await self._run()

    async def start_background(self) -> asyncio.Task:
        self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("queue_processor_stopped", runs=self.runs)

    async def _run(self):
        logger.info("queue_processor_started", interval=self.interval)
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("queue_processor_error", error=str(e))
            await asyncio.sleep(self.interval)
