"""
Email channel — base infrastructure shared by every transport.

Provides:
- NotificationError: structured error hierarchy
- TransportMetrics: send/fail/latency tracking
- EmailTransport: abstract base wrapping every send with metrics and
  exception capture, so callers always get a SendResult back
"""
from __future__ import annotations

import abc
import time
import structlog
from typing import Any, Optional

from models.schemas import SendResult

logger = structlog.get_logger()


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class NotificationError(Exception):
    """Base exception for all notification operations."""


class EmailDeliveryError(NotificationError):
    """The provider rejected the message or could not be reached."""

    def __init__(self, message: str, status_code: int = 0, retryable: bool = True):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class TemplateRenderError(NotificationError):
    """A template could not be rendered from the given payload."""

    def __init__(self, template: str, message: str):
        self.template = template
        super().__init__(f"Failed to render {template}: {message}")


# ══════════════════════════════════════════════════════════════
#  TRANSPORT METRICS
# ══════════════════════════════════════════════════════════════

class TransportMetrics:
    """Tracks send, failure, and latency metrics for one transport."""

    def __init__(self, provider: str):
        self.provider = provider
        self.messages_sent: int = 0
        self.messages_failed: int = 0
        self._latencies: list[float] = []
        self._errors: list[str] = []

    def record_send(self, latency_ms: float = 0.0):
        self.messages_sent += 1
        if latency_ms > 0:
            self._latencies.append(latency_ms)

    def record_failure(self, error: str = ""):
        self.messages_failed += 1
        if error:
            self._errors.append(error)

    @property
    def avg_latency_ms(self) -> float:
        return sum(self._latencies) / len(self._latencies) if self._latencies else 0.0

    @property
    def failure_rate(self) -> float:
        total = self.messages_sent + self.messages_failed
        return self.messages_failed / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "sent": self.messages_sent,
            "failed": self.messages_failed,
            "avg_latency_ms": round(self.avg_latency_ms, 1),
            "failure_rate": round(self.failure_rate, 4),
            "recent_errors": self._errors[-10:],
        }


# ══════════════════════════════════════════════════════════════
#  EMAIL TRANSPORT — Abstract Base
# ══════════════════════════════════════════════════════════════

class EmailTransport(abc.ABC):
    """
    Base class for email transports.

    Subclasses implement _do_send. The base class wraps every send with
    metrics and turns exceptions into failed SendResults. It never retries:
    retry policy belongs to the queue.
    """

    provider: str = "email"

    def __init__(self):
        self.metrics = TransportMetrics(self.provider)

    @abc.abstractmethod
    async def _do_send(
        self, to: list[str], subject: str, html: str,
        reply_to: Optional[str], from_address: Optional[str],
    ) -> SendResult:
        ...

    async def send(
        self,
        to: str | list[str],
        subject: str,
        html: str,
        reply_to: Optional[str] = None,
        from_address: Optional[str] = None,
    ) -> SendResult:
        recipients = to if isinstance(to, list) else [to]
        start = time.monotonic()
        try:
            result = await self._do_send(recipients, subject, html, reply_to, from_address)
        except Exception as e:
            result = SendResult.failure(str(e) or type(e).__name__)

        if result.success:
            self.metrics.record_send((time.monotonic() - start) * 1000)
            logger.info("email_sent",
                        provider=self.provider,
                        to=recipients,
                        subject=subject,
                        message_id=result.message_id)
        else:
            self.metrics.record_failure(result.error or "")
            logger.error("email_send_failed",
                         provider=self.provider,
                         to=recipients,
                         subject=subject,
                         error=result.error)
        return result

    async def close(self) -> None:
        """Release network resources."""

    async def health_check(self) -> dict[str, Any]:
        return {"provider": self.provider, "metrics": self.metrics.to_dict()}
