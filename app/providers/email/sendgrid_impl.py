"""
SendGrid Email Provider implementation.

Talks to the SendGrid v3 REST API through a shared aiohttp session.
"""
from __future__ import annotations

import base64
from typing import Any

import aiohttp

from ...config import get_logger
from ...exceptions import EmailSendError, ProviderInitError
from ..configs import EmailConfig
from .interface import EmailProviderInterface
from .messages import EmailMessage, html_to_text

logger = get_logger("email.sendgrid")

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
SENDGRID_SCOPES_URL = "https://api.sendgrid.com/v3/scopes"


class SendGridEmailProvider(EmailProviderInterface):
    """Email delivery through SendGrid's transactional API."""

    def __init__(self, config: EmailConfig) -> None:
        super().__init__(config)
        self._session: aiohttp.ClientSession | None = None

    async def initialize(self) -> None:
        if not self._config.sendgrid_api_key:
            raise ProviderInitError("SENDGRID_API_KEY not set", provider="sendgrid")

        self._session = aiohttp.ClientSession(
            headers={"Authorization": f"Bearer {self._config.sendgrid_api_key}"},
            timeout=aiohttp.ClientTimeout(total=self._config.send_timeout),
        )
        self._initialized = True
        logger.info("SendGrid email initialized (from: %s)", self._config.from_address)

    def _build_payload(self, message: EmailMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "personalizations": [{"to": [{"email": message.recipient}]}],
            "from": {"email": self._config.from_address, "name": self._config.from_name},
            "subject": message.subject,
            "content": [
                {"type": "text/plain", "value": html_to_text(message.html) or message.subject},
                {"type": "text/html", "value": message.html},
            ],
        }
        if message.reply_to:
            payload["reply_to"] = {"email": message.reply_to}
        if message.attachments:
            payload["attachments"] = [
                {
                    "content": base64.b64encode(attachment.content).decode("ascii"),
                    "filename": attachment.filename,
                    "type": attachment.content_type,
                    "disposition": "attachment",
                }
                for attachment in message.attachments
            ]
        return payload

    async def _deliver(self, message: EmailMessage) -> str | None:
        async with self._session.post(SENDGRID_SEND_URL, json=self._build_payload(message)) as response:
            if response.status in (200, 202):
                return response.headers.get("X-Message-Id")
            body = await response.text()
            raise EmailSendError(
                f"SendGrid rejected message ({response.status})",
                details=body[:500],
                provider="sendgrid",
                retryable=response.status == 429 or response.status >= 500,
            )

    async def health_check(self) -> bool:
        """Verify the API key against the scopes endpoint."""
        if not self._session:
            return False
        try:
            async with self._session.get(SENDGRID_SCOPES_URL) as response:
                return response.status == 200
        except aiohttp.ClientError as e:
            logger.warning("SendGrid health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        return "sendgrid"

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None
        await super().close()
