"""Stripe SDK wrapper for hosted Checkout sessions and webhook verification."""
from __future__ import annotations

import json
import threading
from typing import Any, Dict

import stripe

from giftsplit.config import Settings

_http_client_lock = threading.Lock()
_http_client_timeout: float | None = None


def _configure_http_client(timeout: float) -> None:
    """Install the SDK's pooled requests client once per timeout value."""

    global _http_client_timeout
    with _http_client_lock:
        if _http_client_timeout == timeout and stripe.default_http_client is not None:
            return
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
        _http_client_timeout = timeout


class StripeClient:
    """Wrapper around the Stripe Python SDK to isolate PSP concerns."""

    def __init__(self, settings: Settings) -> None:
        """Initialise the client and set the API key when enabled."""

        self.settings = settings
        self._ensure_enabled()
        self._secret_key = settings.STRIPE_SECRET_KEY
        self._webhook_secret = settings.STRIPE_WEBHOOK_SECRET

        if not self._secret_key:
            raise RuntimeError("Stripe secret key is missing; configure STRIPE_SECRET_KEY.")

        stripe.api_key = self._secret_key
        _configure_http_client(settings.STRIPE_TIMEOUT_SECONDS)

    def _ensure_enabled(self) -> None:
        if not self.settings.STRIPE_ENABLED:
            raise RuntimeError("Stripe integration is disabled; enable STRIPE_ENABLED to proceed.")

    def create_checkout_session(
        self,
        *,
        email: str,
        amount_cents: int,
        currency: str,
        gift_name: str,
        metadata: Dict[str, Any] | None = None,
    ) -> stripe.checkout.Session:
        """Create a one-time hosted checkout page for an exact amount."""

        base_url = self.settings.APP_BASE_URL
        return stripe.checkout.Session.create(
            mode="payment",
            success_url=f"{base_url}/pay/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/pay/cancel",
            line_items=[
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": currency,
                        "unit_amount": amount_cents,
                        "product_data": {"name": gift_name},
                    },
                }
            ],
            customer_email=email,
            metadata={key: str(value) for key, value in (metadata or {}).items()},
        )

    def retrieve_checkout_session(self, session_id: str) -> stripe.checkout.Session:
        return stripe.checkout.Session.retrieve(session_id)

    def expire_checkout_session(self, session_id: str) -> stripe.checkout.Session:
        return stripe.checkout.Session.expire(session_id)

    def construct_webhook_event(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify the signature header and decode the event payload.

        Returns the event as plain JSON so handlers do not depend on SDK
        object semantics. Raises ``stripe.SignatureVerificationError`` on a
        bad signature and ``ValueError`` on a malformed body.
        """

        if not self._webhook_secret:
            raise RuntimeError(
                "Stripe webhook secret is missing; configure STRIPE_WEBHOOK_SECRET for verification."
            )

        text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            text, sig_header, self._webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
        )
        event = json.loads(text)
        if not isinstance(event, dict):
            raise ValueError("Stripe event payload must be a JSON object.")
        return event
