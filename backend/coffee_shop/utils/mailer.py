"""Outgoing email through Resend."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import resend

from ..config import settings

_LOGGER = logging.getLogger("coffee_shop.mail")


class MailDeliveryError(RuntimeError):
    """The mail provider rejected or failed to accept a message."""


@dataclass
class MailBody:
    to: str
    subject: str
    text: str


def send_simple_mail(mail_body: MailBody | None) -> bool:
    """Send a plain-text email.

    Returns False (after logging) when no Resend API key is configured, so
    local development works without a mail account.
    """
    if mail_body is None:
        raise ValueError("mail body is required")
    if not mail_body.to or mail_body.subject is None or mail_body.text is None:
        raise ValueError("recipient, subject and text are required")

    api_key = settings.RESEND_API_KEY
    if not api_key:
        _LOGGER.warning("RESEND_API_KEY not set; skipping mail to %s (%s)", mail_body.to, mail_body.subject)
        return False

    payload = {
        "from": settings.MAIL_FROM,
        "to": [mail_body.to],
        "subject": mail_body.subject,
        "text": mail_body.text,
    }
    previous_api_key = getattr(resend, "api_key", None)
    resend.api_key = api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        _LOGGER.exception("mail delivery failed to %s", mail_body.to)
        raise MailDeliveryError(str(exc)) from exc
    finally:
        resend.api_key = previous_api_key

    if not isinstance(response, dict) or not response.get("id"):
        raise MailDeliveryError(str(response))
    _LOGGER.info("mail sent to %s id=%s", mail_body.to, response.get("id"))
    return True
