"""
Email Provider - Factory module for transactional email.

Selects the appropriate email implementation based on configuration.
"""
from __future__ import annotations

from ...config import get_logger
from ..base import MisconfiguredProvider, ProviderInterface
from ..configs import EmailConfig
from .interface import EmailProviderInterface, validate_recipient
from .messages import (
    BatchRecipient,
    BatchSendResult,
    EmailAttachment,
    EmailMessage,
    SendOptions,
    SendReceipt,
)
from .templates import TEMPLATES, TemplateContext, TemplateKind, render_template

logger = get_logger("email.provider")

SUPPORTED_PROVIDERS = ("sendgrid", "ses", "smtp")


def create_email_provider(config: EmailConfig) -> ProviderInterface:
    """Build the email provider selected by ``config.kind``."""
    if config.kind == "sendgrid":
        from .sendgrid_impl import SendGridEmailProvider
        provider: ProviderInterface = SendGridEmailProvider(config)
    elif config.kind == "ses":
        from .ses_impl import SESEmailProvider
        provider = SESEmailProvider(config)
    elif config.kind == "smtp":
        from .smtp_impl import SMTPEmailProvider
        provider = SMTPEmailProvider(config)
    else:
        logger.error(
            "Unknown email provider: %s. Supported: %s",
            config.kind, ", ".join(SUPPORTED_PROVIDERS),
        )
        return MisconfiguredProvider(
            "email",
            config.kind,
            f"Unknown email provider: {config.kind}. Supported: {', '.join(SUPPORTED_PROVIDERS)}",
        )

    logger.info("Email Provider: %s", config.kind)
    return provider


__all__ = [
    "TEMPLATES",
    "BatchRecipient",
    "BatchSendResult",
    "EmailAttachment",
    "EmailMessage",
    "EmailProviderInterface",
    "SendOptions",
    "SendReceipt",
    "TemplateContext",
    "TemplateKind",
    "create_email_provider",
    "render_template",
    "validate_recipient",
]
