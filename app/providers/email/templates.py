"""
Transactional email templates.

Templates are pure functions of (context, recipient, data...) returning an
EmailMessage. All interpolated values are HTML-escaped. The table is
read-only after import.
"""
from __future__ import annotations

import html
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping

from .messages import EmailMessage


class TemplateKind(str, Enum):
    OTP = "otp"
    WELCOME = "welcome"
    ENROLLMENT_CONFIRMATION = "enrollment_confirmation"
    PAYMENT_RECEIPT = "payment_receipt"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class TemplateContext:
    """Branding shared by every template."""
    brand: str = "RTech Solutions"
    site_url: str = "https://www.rtechsolutions.com"
    support_address: str = "support@rtechsolutions.com"
    currency_symbol: str = "₹"


DEFAULT_CONTEXT = TemplateContext()

OTP_VALIDITY_MINUTES = 10


def _e(value: object) -> str:
    return html.escape(str(value), quote=True)


def _layout(ctx: TemplateContext, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"{body}"
        '<p style="color: #999; font-size: 12px; margin-top: 30px;">'
        f"Questions? Contact us at {_e(ctx.support_address)}<br>"
        f"&copy; {_e(ctx.brand)}"
        "</p></div>"
    )


def _button(url: str, label: str) -> str:
    return (
        f'<p><a href="{_e(url)}" style="display: inline-block; padding: 12px 24px; '
        'background: #4F46E5; color: #fff; text-decoration: none; border-radius: 6px;">'
        f"{_e(label)}</a></p>"
    )


def _format_amount(ctx: TemplateContext, amount: object) -> str:
    try:
        return f"{ctx.currency_symbol}{Decimal(str(amount)):,.2f}"
    except ArithmeticError:
        return f"{ctx.currency_symbol}{amount}"


def otp_template(
    ctx: TemplateContext,
    recipient: str,
    name: str,
    otp: str,
    validity_minutes: int = OTP_VALIDITY_MINUTES,
) -> EmailMessage:
    body = (
        f"<h2>Hello {_e(name)},</h2>"
        "<p>Your verification code is:</p>"
        '<p style="font-size: 32px; font-weight: bold; letter-spacing: 6px;">'
        f"{_e(otp)}</p>"
        f"<p>This code expires in {int(validity_minutes)} minutes.</p>"
        "<p>If you didn't request this code, please ignore this email.</p>"
    )
    return EmailMessage(
        recipient=recipient,
        subject=f"Your {ctx.brand} verification code",
        html=_layout(ctx, body),
    )


def welcome_template(ctx: TemplateContext, recipient: str, name: str) -> EmailMessage:
    body = (
        f"<h2>Welcome to {_e(ctx.brand)}, {_e(name)}!</h2>"
        "<p>Your account is ready. Explore our courses and start learning today.</p>"
        f"{_button(ctx.site_url, 'Get started')}"
    )
    return EmailMessage(
        recipient=recipient,
        subject=f"Welcome to {ctx.brand}",
        html=_layout(ctx, body),
    )


def enrollment_confirmation_template(
    ctx: TemplateContext,
    recipient: str,
    name: str,
    course_name: str,
    course_url: str | None = None,
) -> EmailMessage:
    body = (
        f"<h2>Hi {_e(name)},</h2>"
        f"<p>You're enrolled in <strong>{_e(course_name)}</strong>.</p>"
        f"{_button(course_url or ctx.site_url, 'Go to course')}"
    )
    return EmailMessage(
        recipient=recipient,
        subject=f"Enrollment confirmed: {course_name}",
        html=_layout(ctx, body),
    )


def payment_receipt_template(
    ctx: TemplateContext,
    recipient: str,
    name: str,
    amount: object,
    transaction_id: str,
    description: str | None = None,
) -> EmailMessage:
    item = f"<tr><td>Item</td><td>{_e(description)}</td></tr>" if description else ""
    body = (
        f"<h2>Thanks for your payment, {_e(name)}</h2>"
        '<table style="border-collapse: collapse;">'
        f"<tr><td>Amount</td><td><strong>{_e(_format_amount(ctx, amount))}</strong></td></tr>"
        f"<tr><td>Transaction ID</td><td>{_e(transaction_id)}</td></tr>"
        f"{item}"
        "</table>"
        "<p>Keep this email for your records.</p>"
    )
    return EmailMessage(
        recipient=recipient,
        subject=f"Payment receipt - {transaction_id}",
        html=_layout(ctx, body),
    )


def notification_template(
    ctx: TemplateContext,
    recipient: str,
    name: str,
    subject: str,
    message: str,
    action_url: str | None = None,
    action_label: str = "View details",
) -> EmailMessage:
    body = f"<h2>Hi {_e(name)},</h2><p>{_e(message)}</p>"
    if action_url:
        body += _button(action_url, action_label)
    return EmailMessage(recipient=recipient, subject=subject, html=_layout(ctx, body))


TEMPLATES: Mapping[TemplateKind, Callable[..., EmailMessage]] = MappingProxyType({
    TemplateKind.OTP: otp_template,
    TemplateKind.WELCOME: welcome_template,
    TemplateKind.ENROLLMENT_CONFIRMATION: enrollment_confirmation_template,
    TemplateKind.PAYMENT_RECEIPT: payment_receipt_template,
    TemplateKind.NOTIFICATION: notification_template,
})


def render_template(
    kind: TemplateKind,
    recipient: str,
    *args: object,
    context: TemplateContext = DEFAULT_CONTEXT,
    **kwargs: object,
) -> EmailMessage:
    """Render a template from the table into a ready-to-send message."""
    return TEMPLATES[kind](context, recipient, *args, **kwargs)
