"""
SMTP Email Provider implementation.

Uses aiosmtplib; one connection per message keeps the provider free of
shared connection state.
"""
from __future__ import annotations

import aiosmtplib

from ...config import get_logger
from ...exceptions import EmailSendError, ProviderInitError
from .interface import EmailProviderInterface
from .messages import EmailMessage, build_mime_message

logger = get_logger("email.smtp")


class SMTPEmailProvider(EmailProviderInterface):
    """Email delivery through an SMTP relay."""

    async def initialize(self) -> None:
        if not self._config.smtp_host or not self._config.smtp_user:
            raise ProviderInitError(
                "SMTP configuration incomplete",
                details="Set SMTP_HOST and SMTP_USER",
                provider="smtp",
            )
        self._initialized = True
        logger.info(
            "SMTP email initialized (host: %s:%d, starttls: %s)",
            self._config.smtp_host, self._config.smtp_port, self._config.smtp_starttls,
        )

    async def _deliver(self, message: EmailMessage) -> str | None:
        mime = build_mime_message(message, self.sender)
        try:
            await aiosmtplib.send(
                mime,
                hostname=self._config.smtp_host,
                port=self._config.smtp_port,
                username=self._config.smtp_user,
                password=self._config.smtp_password,
                start_tls=self._config.smtp_starttls,
                timeout=self._config.send_timeout,
            )
        except (aiosmtplib.SMTPRecipientsRefused, aiosmtplib.SMTPSenderRefused) as e:
            raise EmailSendError(
                "SMTP server refused the message",
                details=str(e),
                provider="smtp",
                retryable=False,
            ) from e
        return mime["Message-ID"]

    async def health_check(self) -> bool:
        """Open a connection, issue NOOP and disconnect (the verify() of SMTP)."""
        if not self.is_available():
            return False
        client = aiosmtplib.SMTP(
            hostname=self._config.smtp_host,
            port=self._config.smtp_port,
            start_tls=self._config.smtp_starttls,
            timeout=self._config.send_timeout,
        )
        try:
            async with client:
                await client.noop()
            return True
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.warning("SMTP health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        return "smtp"
