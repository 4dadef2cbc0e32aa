"""
Resend email transport — sends rendered HTML through the Resend HTTP API.

    POST {api_base_url}/emails
    Authorization: Bearer <api key>
    {"from": ..., "to": [...], "subject": ..., "html": ..., "reply_to": ...}

Success responses carry {"id": "<provider message id>"}; errors carry
{"statusCode": ..., "name": ..., "message": ...}.
"""
from __future__ import annotations

import structlog
from typing import Any, Optional

import httpx

from channels.base import EmailTransport, EmailDeliveryError
from config.settings import EmailConfig
from models.schemas import SendResult

logger = structlog.get_logger()

NOT_CONFIGURED = "Email service not configured"


class ResendEmailTransport(EmailTransport):
    """
    Email transport for the Resend API.

    The httpx client is created lazily; tests inject one built on
    httpx.MockTransport.
    """

    provider = "resend"

    def __init__(self, config: EmailConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self.config = config
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.config.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_base_url,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def _do_send(
        self, to: list[str], subject: str, html: str,
        reply_to: Optional[str], from_address: Optional[str],
    ) -> SendResult:
        if not self.configured:
            logger.warning("email_not_configured", reason="RESEND_API_KEY not set")
            return SendResult.failure(NOT_CONFIGURED)

        payload: dict[str, Any] = {
            "from": from_address or self.config.from_address,
            "to": to,
            "subject": subject,
            "html": html,
        }
        reply = reply_to or self.config.reply_to
        if reply:
            payload["reply_to"] = reply

        client = await self._get_client()
        try:
            response = await client.post("/emails", json=payload)
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Email provider unreachable: {e}") from e

        body = self._json_body(response)
        if response.is_error:
            message = body.get("message") or response.reason_phrase or "Unknown error"
            return SendResult.failure(message)

        return SendResult.ok(message_id=body.get("id"))

    @staticmethod
    def _json_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
