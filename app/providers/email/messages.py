"""
Email message types shared by every email provider.
"""
from __future__ import annotations

import email.message
import re
from dataclasses import dataclass
from email.utils import formataddr, make_msgid

_TAGS = re.compile(r"<[^>]+>")
_BLOCK_BREAKS = re.compile(r"</(p|h[1-6]|div|tr)>|<br\s*/?>", re.I)
_BLANK_LINES = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class EmailMessage:
    """A fully rendered message addressed to one recipient."""
    recipient: str
    subject: str
    html: str
    attachments: tuple[EmailAttachment, ...] = ()
    reply_to: str | None = None


@dataclass(frozen=True)
class SendOptions:
    """Optional extras for send()."""
    attachments: tuple[EmailAttachment, ...] = ()
    reply_to: str | None = None


@dataclass(frozen=True)
class SendReceipt:
    recipient: str
    provider: str
    message_id: str | None
    elapsed_ms: float


@dataclass(frozen=True)
class BatchRecipient:
    to: str
    subject: str
    html: str


@dataclass(frozen=True)
class BatchSendResult:
    """Outcome of one recipient in send_batch(); exactly one of receipt/error is set."""
    recipient: str
    receipt: SendReceipt | None = None
    error: str | None = None
    error_type: str | None = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.receipt is not None


def html_to_text(html: str) -> str:
    """Plain-text alternative for clients that do not render HTML."""
    text = _BLOCK_BREAKS.sub("\n", html)
    text = _TAGS.sub("", text)
    lines = (line.strip() for line in text.splitlines())
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def format_sender(address: str, name: str | None) -> str:
    return formataddr((name, address)) if name else address


def build_mime_message(message: EmailMessage, sender: str) -> email.message.EmailMessage:
    """Build a multipart/alternative MIME message (plus attachments)."""
    mime = email.message.EmailMessage()
    mime["From"] = sender
    mime["To"] = message.recipient
    mime["Subject"] = message.subject
    mime["Message-ID"] = make_msgid()
    if message.reply_to:
        mime["Reply-To"] = message.reply_to

    mime.set_content(html_to_text(message.html) or message.subject)
    mime.add_alternative(message.html, subtype="html")

    for attachment in message.attachments:
        maintype, _, subtype = attachment.content_type.partition("/")
        mime.add_attachment(
            attachment.content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return mime
