# FILE: ova/core/emailer.py
from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage

from ova.core.config import settings

logger = logging.getLogger(__name__)


def _sender() -> str:
    sender = settings.SMTP_FROM or settings.SMTP_USER
    if not sender:
        raise RuntimeError("Set SMTP_FROM or SMTP_USER to send email")
    return sender


def send_email(to_email: str, subject: str, body: str) -> bool:
    """
    Plain-text mail for notifications and feedback links.

    Returns False (and only logs) when EMAIL_ENABLED is off.
    SMTP errors propagate; callers that must not fail wrap this.
    """
    if not to_email:
        raise ValueError("send_email: recipient is required")

    if not settings.EMAIL_ENABLED:
        logger.info("Email disabled, not sending to=%s subject=%r", to_email,
                    subject)
        return False

    if not settings.SMTP_HOST:
        raise RuntimeError("SMTP_HOST is not configured")

    msg = EmailMessage()
    msg["From"] = _sender()
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        if settings.SMTP_TLS:
            server.starttls(context=ssl.create_default_context())
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)

    logger.info("Email sent to=%s subject=%r", to_email, subject)
    return True
