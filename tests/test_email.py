"""Tests for the email provider layer.

Covers:
- send(): recipient/subject validation before any provider call
- send_batch(): per-recipient isolation, input order, retry of retryable
  failures only, every recipient started at once
- SendGridEmailProvider: payload, message id, status-code retry classification
- SMTPEmailProvider: init requirements, aiosmtplib call, refused recipients
- SESEmailProvider: ClientError code classification
- Factory: unknown kind yields a MisconfiguredProvider
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest
from botocore.exceptions import ClientError

from app.exceptions import (
    EmailSendError,
    FeatureUnavailableError,
    ProviderInitError,
    ValidationError,
)
from app.providers.base import MisconfiguredProvider
from app.providers.email import (
    BatchRecipient,
    EmailMessage,
    SendOptions,
    create_email_provider,
    validate_recipient,
)
from app.providers.email.sendgrid_impl import SENDGRID_SEND_URL, SendGridEmailProvider
from app.providers.email.ses_impl import SESEmailProvider
from app.providers.email.smtp_impl import SMTPEmailProvider
from tests.conftest import RecordingEmailProvider, make_email_config

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _batch(*addresses: str) -> list[BatchRecipient]:
    return [BatchRecipient(to=address, subject="Course update", html="<p>Hello</p>") for address in addresses]


def _rejected(retryable: bool) -> EmailSendError:
    return EmailSendError("rejected", provider="recording", retryable=retryable)


async def _make_recording(**kwargs: object) -> RecordingEmailProvider:
    provider = RecordingEmailProvider(**kwargs)
    await provider.initialize()
    return provider


class _Response:
    """Minimal aiohttp response used as an async context manager."""

    def __init__(self, status: int, headers: dict | None = None, body: str = "") -> None:
        self.status = status
        self.headers = headers or {}
        self._body = body

    async def text(self) -> str:
        return self._body

    async def __aenter__(self) -> "_Response":
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        return False


# ---------------------------------------------------------------------------
# Single send
# ---------------------------------------------------------------------------


class TestSend:
    @pytest.mark.asyncio
    async def test_send_returns_receipt(self) -> None:
        provider = await _make_recording()
        receipt = await provider.send("alice@gmail.com", "Hello", "<p>Hi Alice</p>")
        assert receipt.recipient == "alice@gmail.com"
        assert receipt.provider == "recording"
        assert receipt.message_id == "msg-1"
        assert receipt.elapsed_ms >= 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", ["", "not-an-email", "alice@", "@gmail.com"])
    async def test_invalid_recipient_never_reaches_provider(self, address: str) -> None:
        provider = await _make_recording()
        with pytest.raises(ValidationError):
            await provider.send(address, "Hello", "<p>Hi</p>")
        assert provider.attempts == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("subject", ["", "   ", "two\nlines"])
    async def test_invalid_subject_rejected(self, subject: str) -> None:
        provider = await _make_recording()
        with pytest.raises(ValidationError):
            await provider.send("alice@gmail.com", subject, "<p>Hi</p>")
        assert provider.attempts == {}

    @pytest.mark.asyncio
    async def test_uninitialized_provider_is_unavailable(self) -> None:
        provider = RecordingEmailProvider()
        with pytest.raises(FeatureUnavailableError):
            await provider.send("alice@gmail.com", "Hello", "<p>Hi</p>")

    @pytest.mark.asyncio
    async def test_options_are_forwarded(self) -> None:
        provider = await _make_recording()
        await provider.send(
            "alice@gmail.com", "Hello", "<p>Hi</p>",
            SendOptions(reply_to="support@rtechsolutions.com"),
        )
        assert provider.delivered[0].reply_to == "support@rtechsolutions.com"

    @pytest.mark.asyncio
    async def test_send_otp_uses_template(self) -> None:
        provider = await _make_recording()
        await provider.send_otp("alice@gmail.com", "Alice", "482913")
        message = provider.delivered[0]
        assert "482913" in message.html
        assert "verification code" in message.subject

    def test_validate_recipient_strips_whitespace(self) -> None:
        assert validate_recipient("  alice@gmail.com ") == "alice@gmail.com"


# ---------------------------------------------------------------------------
# Batch send
# ---------------------------------------------------------------------------


class TestSendBatch:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self) -> None:
        provider = await _make_recording(failures={"bob@gmail.com": [_rejected(retryable=False)]})

        results = await provider.send_batch(_batch("alice@gmail.com", "bob@gmail.com", "carol@gmail.com"))

        assert [result.recipient for result in results] == [
            "alice@gmail.com", "bob@gmail.com", "carol@gmail.com",
        ]
        assert [result.ok for result in results] == [True, False, True]
        assert results[1].error_type == "EmailSendError"
        assert results[1].attempts == 1
        assert len(provider.delivered) == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        provider = await _make_recording()
        assert await provider.send_batch([]) == []

    @pytest.mark.asyncio
    async def test_retryable_failure_is_retried(self) -> None:
        provider = await _make_recording(failures={"bob@gmail.com": [_rejected(retryable=True)]})

        results = await provider.send_batch(_batch("bob@gmail.com"))

        assert results[0].ok is True
        assert results[0].attempts == 2
        assert provider.attempts["bob@gmail.com"] == 2

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self) -> None:
        provider = await _make_recording(
            failures={"bob@gmail.com": [_rejected(retryable=True) for _ in range(5)]},
        )

        results = await provider.send_batch(_batch("bob@gmail.com"))

        # batch_max_retries=2 -> one attempt plus two retries
        assert results[0].ok is False
        assert results[0].attempts == 3
        assert provider.attempts["bob@gmail.com"] == 3

    @pytest.mark.asyncio
    async def test_invalid_address_fails_without_retry(self) -> None:
        provider = await _make_recording()

        results = await provider.send_batch(_batch("alice@gmail.com", "not-an-email"))

        assert results[0].ok is True
        assert results[1].ok is False
        assert results[1].error_type == "ValidationError"
        assert results[1].attempts == 1

    @pytest.mark.asyncio
    async def test_all_recipients_start_together(self) -> None:
        in_flight = 0
        peak = 0

        class _SlowProvider(RecordingEmailProvider):
            async def _deliver(self, message: EmailMessage) -> str | None:
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.05)
                in_flight -= 1
                return "ok"

        provider = _SlowProvider(make_email_config())
        await provider.initialize()

        results = await provider.send_batch(_batch(*(f"user{i}@gmail.com" for i in range(25))))

        assert all(result.ok for result in results)
        assert peak == 25

    @pytest.mark.asyncio
    async def test_hanging_sends_do_not_delay_fast_one(self) -> None:
        delivered_at: dict[str, float] = {}

        class _HangingProvider(RecordingEmailProvider):
            async def _deliver(self, message: EmailMessage) -> str | None:
                if message.recipient.startswith("slow"):
                    await asyncio.sleep(10)
                delivered_at[message.recipient] = time.perf_counter()
                return "ok"

        provider = _HangingProvider(make_email_config(send_timeout=0.3, batch_max_retries=0))
        await provider.initialize()
        addresses = [f"slow{i}@gmail.com" for i in range(12)] + ["fast@rtechsolutions.in"]

        start = time.perf_counter()
        results = await provider.send_batch(_batch(*addresses))
        elapsed = time.perf_counter() - start

        assert delivered_at["fast@rtechsolutions.in"] - start < 0.2
        assert results[-1].ok
        assert not any(result.ok for result in results[:-1])
        assert elapsed < 1.5


# ---------------------------------------------------------------------------
# SendGrid
# ---------------------------------------------------------------------------


class TestSendGrid:
    @pytest.mark.asyncio
    async def test_missing_api_key_fails_init(self) -> None:
        provider = SendGridEmailProvider(make_email_config(kind="sendgrid"))
        with pytest.raises(ProviderInitError, match="SENDGRID_API_KEY"):
            await provider.initialize()

    @pytest.mark.asyncio
    async def test_accepted_message_returns_id(self) -> None:
        provider = SendGridEmailProvider(make_email_config(kind="sendgrid", sendgrid_api_key="SG.test.key"))
        provider._initialized = True
        session = MagicMock()
        session.post = MagicMock(return_value=_Response(202, {"X-Message-Id": "sg-123"}))
        provider._session = session

        receipt = await provider.send("alice@gmail.com", "Hello", "<p>Hi</p>")

        assert receipt.message_id == "sg-123"
        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == SENDGRID_SEND_URL
        assert payload["personalizations"] == [{"to": [{"email": "alice@gmail.com"}]}]
        assert payload["from"]["email"] == "noreply@rtechsolutions.in"
        assert [part["type"] for part in payload["content"]] == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("status", "retryable"), [(400, False), (401, False), (429, True), (503, True)])
    async def test_rejection_classification(self, status: int, retryable: bool) -> None:
        provider = SendGridEmailProvider(make_email_config(kind="sendgrid", sendgrid_api_key="SG.test.key"))
        provider._initialized = True
        session = MagicMock()
        session.post = MagicMock(return_value=_Response(status, body='{"errors": []}'))
        provider._session = session

        with pytest.raises(EmailSendError) as exc_info:
            await provider.send("alice@gmail.com", "Hello", "<p>Hi</p>")

        assert exc_info.value.retryable is retryable
        assert exc_info.value.provider == "sendgrid"

    @pytest.mark.asyncio
    async def test_close_closes_session(self) -> None:
        provider = SendGridEmailProvider(make_email_config(kind="sendgrid", sendgrid_api_key="SG.test.key"))
        session = MagicMock()
        session.close = AsyncMock()
        provider._session = session
        provider._initialized = True

        await provider.close()

        session.close.assert_awaited_once()
        assert not provider.is_available()


# ---------------------------------------------------------------------------
# SMTP
# ---------------------------------------------------------------------------


class TestSMTP:
    @pytest.mark.asyncio
    async def test_missing_host_fails_init(self) -> None:
        provider = SMTPEmailProvider(make_email_config(smtp_user="mailer"))
        with pytest.raises(ProviderInitError, match="SMTP configuration incomplete"):
            await provider.initialize()

    @pytest.mark.asyncio
    async def test_send_uses_aiosmtplib(self) -> None:
        provider = SMTPEmailProvider(make_email_config(
            smtp_host="smtp.gmail.com", smtp_user="mailer", smtp_password="app-password",
        ))
        await provider.initialize()

        with patch("app.providers.email.smtp_impl.aiosmtplib.send", new=AsyncMock(return_value=({}, "OK"))) as send:
            receipt = await provider.send("alice@gmail.com", "Hello", "<p>Hi</p>")

        mime = send.await_args.args[0]
        kwargs = send.await_args.kwargs
        assert mime["To"] == "alice@gmail.com"
        assert kwargs["hostname"] == "smtp.gmail.com"
        assert kwargs["port"] == 587
        assert kwargs["start_tls"] is True
        assert receipt.message_id == mime["Message-ID"]

    @pytest.mark.asyncio
    async def test_refused_recipient_is_not_retryable(self) -> None:
        provider = SMTPEmailProvider(make_email_config(smtp_host="smtp.gmail.com", smtp_user="mailer"))
        await provider.initialize()
        refused = aiosmtplib.SMTPRecipientsRefused([])

        with patch("app.providers.email.smtp_impl.aiosmtplib.send", new=AsyncMock(side_effect=refused)):
            with pytest.raises(EmailSendError) as exc_info:
                await provider.send("alice@gmail.com", "Hello", "<p>Hi</p>")

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_dropped_connection_is_retryable(self) -> None:
        provider = SMTPEmailProvider(make_email_config(smtp_host="smtp.gmail.com", smtp_user="mailer"))
        await provider.initialize()
        dropped = aiosmtplib.SMTPServerDisconnected("Connection lost")

        with patch("app.providers.email.smtp_impl.aiosmtplib.send", new=AsyncMock(side_effect=dropped)):
            with pytest.raises(EmailSendError) as exc_info:
                await provider.send("alice@gmail.com", "Hello", "<p>Hi</p>")

        assert exc_info.value.retryable is True


# ---------------------------------------------------------------------------
# SES
# ---------------------------------------------------------------------------


class TestSES:
    @pytest.mark.asyncio
    async def test_missing_credentials_fail_init(self) -> None:
        provider = SESEmailProvider(make_email_config(kind="ses"))
        with pytest.raises(ProviderInitError):
            await provider.initialize()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("code", "retryable"), [("Throttling", True), ("MessageRejected", False)])
    async def test_client_error_classification(self, code: str, retryable: bool) -> None:
        provider = SESEmailProvider(make_email_config(
            kind="ses", aws_access_key_id="AKIATEST", aws_secret_access_key="secret",
        ))
        await provider.initialize()
        ses = MagicMock()
        ses.send_raw_email = AsyncMock(
            side_effect=ClientError({"Error": {"Code": code, "Message": "nope"}}, "SendRawEmail"),
        )
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=ses)
        context.__aexit__ = AsyncMock(return_value=False)

        with patch.object(provider, "_client", return_value=context):
            with pytest.raises(EmailSendError) as exc_info:
                await provider.send("alice@gmail.com", "Hello", "<p>Hi</p>")

        assert exc_info.value.retryable is retryable
        assert code in exc_info.value.message


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestEmailFactory:
    @pytest.mark.parametrize(
        ("kind", "cls"),
        [("sendgrid", SendGridEmailProvider), ("ses", SESEmailProvider), ("smtp", SMTPEmailProvider)],
    )
    def test_known_kinds(self, kind: str, cls: type) -> None:
        assert isinstance(create_email_provider(make_email_config(kind=kind)), cls)

    @pytest.mark.asyncio
    async def test_unknown_kind_is_misconfigured(self) -> None:
        provider = create_email_provider(make_email_config(kind="mailgun"))
        assert isinstance(provider, MisconfiguredProvider)
        assert provider.family == "email"
        with pytest.raises(ProviderInitError):
            await provider.initialize()
