"""Outbound payment emails."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape
from typing import Protocol

import httpx

from giftsplit.config import Settings, get_settings
from giftsplit.services.split import format_money

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class Notifier(Protocol):
    """Protocol for email delivery backends."""

    def send(self, recipient: str, subject: str, html: str) -> None:
        """Deliver one message or raise on failure."""


class NullNotifier:
    """Drops every message; used when no email provider is configured."""

    def send(self, recipient: str, subject: str, html: str) -> None:
        logger.info("Email delivery disabled; message dropped", extra={"subject": subject})


class ResendNotifier:
    """Send email through the Resend HTTP API."""

    def __init__(self, api_key: str, sender: str, timeout: float) -> None:
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout

    def send(self, recipient: str, subject: str, html: str) -> None:
        response = httpx.post(
            RESEND_API_URL,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={
                "from": self._sender,
                "to": [recipient],
                "subject": subject,
                "html": html,
            },
            timeout=self._timeout,
        )
        response.raise_for_status()


def get_notifier(settings: Settings | None = None) -> Notifier:
    settings = settings or get_settings()
    if not settings.RESEND_API_KEY:
        return NullNotifier()
    return ResendNotifier(
        settings.RESEND_API_KEY,
        settings.MAIL_FROM,
        timeout=settings.NOTIFY_TIMEOUT_SECONDS,
    )


@dataclass(frozen=True)
class PaymentEmail:
    subject: str
    html: str


def render_payment_email(
    *, gift_name: str, amount_cents: int, currency: str, checkout_url: str
) -> PaymentEmail:
    """Build the "chip in" message carrying a participant's checkout link."""

    amount = format_money(amount_cents, currency)
    html = (
        "<div style=\"font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial;\">"
        f"<h2>Chip in for: {escape(gift_name)}</h2>"
        f"<p>Amount: <strong>{escape(amount)}</strong></p>"
        f"<p><a href=\"{escape(checkout_url, quote=True)}\">Pay now</a></p>"
        "</div>"
    )
    return PaymentEmail(subject=f"Chip in: {gift_name}", html=html)


def send_payment_email(
    notifier: Notifier,
    *,
    recipient: str,
    gift_name: str,
    amount_cents: int,
    currency: str,
    checkout_url: str,
) -> bool:
    """Send a payment email; delivery failures are logged, never raised."""

    message = render_payment_email(
        gift_name=gift_name,
        amount_cents=amount_cents,
        currency=currency,
        checkout_url=checkout_url,
    )
    try:
        notifier.send(recipient, message.subject, message.html)
    except (httpx.HTTPError, OSError):
        logger.warning("Payment email delivery failed", exc_info=True)
        return False
    return True


__all__ = [
    "Notifier",
    "NullNotifier",
    "PaymentEmail",
    "ResendNotifier",
    "get_notifier",
    "render_payment_email",
    "send_payment_email",
]
