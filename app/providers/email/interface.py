"""
Abstract interface for transactional email providers.

All email providers must implement this interface to ensure
consistent behavior and easy hot-swapping. Implementations only supply
_deliver(); validation, templating, timeouts and batch fan-out are
shared.
"""
from __future__ import annotations

import asyncio
import time
from abc import abstractmethod
from typing import ClassVar, Sequence

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ...config import get_logger
from ...exceptions import (
    BackendException,
    EmailSendError,
    ValidationError,
    is_retryable_exception,
)
from ...utils import backoff_delay
from ..base import ProviderInterface
from ..configs import EmailConfig
from .messages import (
    BatchRecipient,
    BatchSendResult,
    EmailMessage,
    SendOptions,
    SendReceipt,
    format_sender,
)
from .templates import TemplateContext, TemplateKind, render_template

logger = get_logger("email")

_EMAIL_ADAPTER = TypeAdapter(EmailStr)

MAX_SUBJECT_LENGTH = 998


def validate_recipient(address: str) -> str:
    """Validate and normalize a recipient address."""
    try:
        return _EMAIL_ADAPTER.validate_python(address.strip())
    except (PydanticValidationError, AttributeError):
        raise ValidationError(f"Invalid recipient address: {address!r}") from None


class EmailProviderInterface(ProviderInterface):
    """
    Abstract interface for email providers.

    All implementations must provide:
    - _deliver(): hand a validated message to the service, returning its ID
    - initialize() / get_provider_name()
    """

    family: ClassVar[str] = "email"

    def __init__(self, config: EmailConfig) -> None:
        super().__init__()
        self._config = config
        self._template_context = TemplateContext(
            brand=config.from_name,
            site_url=config.site_url or TemplateContext.site_url,
            support_address=config.support_address or TemplateContext.support_address,
        )

    @property
    def sender(self) -> str:
        return format_sender(self._config.from_address, self._config.from_name)

    # =========================================================================
    # Sending
    # =========================================================================

    async def send(
        self,
        recipient: str,
        subject: str,
        html: str,
        options: SendOptions | None = None,
    ) -> SendReceipt:
        """
        Send one HTML email.

        Raises:
            ValidationError: Bad recipient or empty subject (no provider call)
            EmailSendError: Provider rejected or failed to deliver
            ProviderTimeoutError: Provider did not answer in time
        """
        options = options or SendOptions()
        return await self.send_message(EmailMessage(
            recipient=recipient,
            subject=subject,
            html=html,
            attachments=options.attachments,
            reply_to=options.reply_to,
        ))

    async def send_message(self, message: EmailMessage) -> SendReceipt:
        """Validate and deliver a fully built message."""
        recipient = validate_recipient(message.recipient)
        subject = message.subject.strip()
        if not subject or len(subject) > MAX_SUBJECT_LENGTH or "\n" in subject:
            raise ValidationError("Email subject must be a single non-empty line")
        if recipient != message.recipient or subject != message.subject:
            message = EmailMessage(
                recipient=recipient,
                subject=subject,
                html=message.html,
                attachments=message.attachments,
                reply_to=message.reply_to,
            )
        self._ensure_available()

        start = time.perf_counter()
        message_id = await self._call(
            "send",
            self._deliver(message),
            timeout=self._config.send_timeout,
            error_cls=EmailSendError,
            target=recipient,
        )
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Email sent | provider=%s | to=%s | message_id=%s | elapsed_ms=%.1f",
            self.get_provider_name(), recipient, message_id, elapsed_ms,
        )
        return SendReceipt(
            recipient=recipient,
            provider=self.get_provider_name(),
            message_id=message_id,
            elapsed_ms=elapsed_ms,
        )

    async def send_template(
        self,
        kind: TemplateKind,
        recipient: str,
        *args: object,
        **kwargs: object,
    ) -> SendReceipt:
        message = render_template(kind, recipient, *args, context=self._template_context, **kwargs)
        return await self.send_message(message)

    async def send_otp(self, recipient: str, name: str, otp: str) -> SendReceipt:
        return await self.send_template(TemplateKind.OTP, recipient, name, otp)

    async def send_welcome(self, recipient: str, name: str) -> SendReceipt:
        return await self.send_template(TemplateKind.WELCOME, recipient, name)

    async def send_enrollment_confirmation(
        self,
        recipient: str,
        name: str,
        course_name: str,
        course_url: str | None = None,
    ) -> SendReceipt:
        return await self.send_template(
            TemplateKind.ENROLLMENT_CONFIRMATION, recipient, name, course_name, course_url,
        )

    async def send_payment_receipt(
        self,
        recipient: str,
        name: str,
        amount: object,
        transaction_id: str,
        description: str | None = None,
    ) -> SendReceipt:
        return await self.send_template(
            TemplateKind.PAYMENT_RECEIPT, recipient, name, amount, transaction_id, description,
        )

    async def send_notification(
        self,
        recipient: str,
        name: str,
        subject: str,
        message: str,
        action_url: str | None = None,
    ) -> SendReceipt:
        return await self.send_template(
            TemplateKind.NOTIFICATION, recipient, name, subject, message, action_url,
        )

    # =========================================================================
    # Batch
    # =========================================================================

    async def send_batch(self, recipients: Sequence[BatchRecipient]) -> list[BatchSendResult]:
        """
        Send many emails concurrently, isolating failures per recipient.

        Every recipient starts at once and is retried independently on
        retryable errors; a slow or failing send never cancels or delays the
        others. Each attempt is bounded by EMAIL_SEND_TIMEOUT_SECONDS. Results
        keep input order.
        """
        if not recipients:
            return []

        start = time.perf_counter()
        results = list(await asyncio.gather(*(self._send_with_retry(item) for item in recipients)))
        failed = sum(1 for result in results if not result.ok)
        log = logger.warning if failed else logger.info
        log(
            "Email batch finished | provider=%s | total=%d | sent=%d | failed=%d | elapsed_ms=%.1f",
            self.get_provider_name(),
            len(results),
            len(results) - failed,
            failed,
            (time.perf_counter() - start) * 1000,
        )
        return results

    async def _send_with_retry(self, item: BatchRecipient) -> BatchSendResult:
        max_retries = self._config.batch_max_retries
        attempt = 0
        while True:
            attempt += 1
            try:
                receipt = await self.send(item.to, item.subject, item.html)
                return BatchSendResult(recipient=item.to, receipt=receipt, attempts=attempt)
            except BackendException as e:
                if attempt > max_retries or not is_retryable_exception(e):
                    return BatchSendResult(
                        recipient=item.to,
                        error=e.message,
                        error_type=type(e).__name__,
                        attempts=attempt,
                    )
                delay = backoff_delay(
                    attempt - 1,
                    self._config.retry_base_delay,
                    self._config.retry_max_delay,
                )
                logger.warning(
                    "Batch send failed | to=%s | attempt=%d/%d | error=%s | retry_in=%.2fs",
                    item.to, attempt, max_retries + 1, e.message, delay,
                )
                await asyncio.sleep(delay)

    # =========================================================================
    # Provider hooks
    # =========================================================================

    @abstractmethod
    async def _deliver(self, message: EmailMessage) -> str | None:
        """
        Hand a validated message to the email service.

        Returns:
            Provider message ID, if the service returns one

        Raises:
            EmailSendError: With ``retryable`` set according to the failure
        """
