"""Services handling Stripe Checkout webhook callbacks."""
from __future__ import annotations

import logging
from typing import Any, Mapping

import stripe
from fastapi import Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftsplit.config import get_settings
from giftsplit.db import is_unique_violation
from giftsplit.models import Invitee, InviteeStatus, StripeEvent
from giftsplit.services import checkout_sessions as session_repo
from giftsplit.services.psp_stripe import StripeClient
from giftsplit.utils.audit import log_audit
from giftsplit.utils.errors import http_error
from giftsplit.utils.time import utcnow

logger = logging.getLogger(__name__)

PAID_EVENT_TYPES = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.async_payment_succeeded",
    }
)
EXPIRED_EVENT_TYPE = "checkout.session.expired"


async def handle_stripe_webhook(request: Request, db: Session) -> dict[str, bool]:
    """Verify a Stripe callback and reconcile it against checkout sessions."""

    settings = get_settings()
    if not settings.STRIPE_ENABLED:
        logger.warning("Stripe webhook received while Stripe is disabled")
        raise http_error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "STRIPE_DISABLED",
            "Stripe integration is disabled.",
        )

    payload = await request.body()
    sig_header = request.headers.get("Stripe-Signature")
    if not sig_header:
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "STRIPE_SIGNATURE_MISSING",
            "Stripe-Signature header is required.",
        )

    try:
        client = StripeClient(settings)
        event = client.construct_webhook_event(payload, sig_header)
    except RuntimeError as exc:  # configuration issue
        logger.error("Stripe webhook configuration error", exc_info=True)
        raise http_error(
            status.HTTP_503_SERVICE_UNAVAILABLE, "STRIPE_NOT_CONFIGURED", str(exc)
        ) from exc
    except stripe.SignatureVerificationError as exc:
        logger.warning("Stripe signature verification failed")
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "STRIPE_SIGNATURE_INVALID",
            "Invalid Stripe signature.",
        ) from exc
    except ValueError as exc:
        logger.warning("Failed to parse Stripe webhook event", exc_info=True)
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "STRIPE_EVENT_INVALID",
            "Invalid Stripe webhook payload.",
        ) from exc

    return process_event(db, event)


def _record_event(db: Session, event_id: str, event_type: str) -> StripeEvent | None:
    """Ledger the event id; return None when it was already seen."""

    seen = db.scalars(
        select(StripeEvent.id).where(StripeEvent.stripe_event_id == event_id)
    ).first()
    if seen is not None:
        return None

    record = StripeEvent(stripe_event_id=event_id, event_type=event_type)
    try:
        with db.begin_nested():
            db.add(record)
    except IntegrityError as exc:
        db.rollback()
        if not is_unique_violation(exc):
            raise
        return None
    return record


def _payment_intent_id(checkout: Mapping[str, Any]) -> str | None:
    intent = checkout.get("payment_intent")
    if isinstance(intent, Mapping):
        return intent.get("id")
    return intent


def _checkout_object(event: Mapping[str, Any]) -> Mapping[str, Any]:
    checkout = (event.get("data") or {}).get("object") or {}
    if not checkout.get("id"):
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "STRIPE_PAYLOAD_INCOMPLETE",
            "Checkout session is missing required fields.",
        )
    return checkout


def _load_session(db: Session, stripe_session_id: str):
    session = session_repo.get_by_stripe_session_id(db, stripe_session_id, for_update=True)
    if session is None:
        logger.error(
            "Stripe event references unknown checkout session",
            extra={"stripe_session_id": stripe_session_id},
        )
        raise http_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "CHECKOUT_SESSION_UNKNOWN",
            "No checkout session is linked to this event.",
            {"stripe_session_id": stripe_session_id},
        )
    return session


def _apply_paid(db: Session, event: Mapping[str, Any]) -> None:
    checkout = _checkout_object(event)
    session = _load_session(db, checkout["id"])
    now = utcnow()
    session_repo.mark_paid(
        db,
        session,
        amount_total_cents=checkout.get("amount_total"),
        payment_intent_id=_payment_intent_id(checkout),
        paid_at=now,
    )

    invitee = db.scalars(
        select(Invitee).where(Invitee.id == session.invitee_id).with_for_update()
    ).one()
    if invitee.status != InviteeStatus.PAID:
        invitee.status = InviteeStatus.PAID
        invitee.paid_at = now
        log_audit(
            db,
            actor="stripe",
            action="INVITEE_PAID",
            entity="Invitee",
            entity_id=invitee.id,
            data={
                "gift_id": invitee.gift_id,
                "stripe_session_id": session.stripe_session_id,
                "amount_total_cents": session.amount_total_cents,
                "stripe_payment_intent_id": session.stripe_payment_intent_id,
            },
        )
    logger.info(
        "Checkout session paid",
        extra={"stripe_session_id": session.stripe_session_id, "invitee_id": invitee.id},
    )


def _apply_expired(db: Session, event: Mapping[str, Any]) -> None:
    checkout = _checkout_object(event)
    session = _load_session(db, checkout["id"])
    if session_repo.mark_expired(db, session):
        logger.info(
            "Checkout session expired",
            extra={"stripe_session_id": session.stripe_session_id},
        )


def process_event(db: Session, event: Mapping[str, Any]) -> dict[str, bool]:
    """Apply a verified event exactly once.

    The ledger row, the state changes and ``handled_at`` commit together;
    any failure rolls all of them back so a redelivery is processed again.
    """

    event_id = event.get("id")
    event_type = event.get("type") or ""
    if not event_id:
        raise http_error(
            status.HTTP_400_BAD_REQUEST, "MISSING_EVENT_ID", "Stripe event id is missing."
        )

    logger.info("Stripe webhook received", extra={"event_type": event_type, "event_id": event_id})
    record = _record_event(db, event_id, event_type)
    if record is None:
        logger.info("Duplicate Stripe event ignored", extra={"event_id": event_id})
        return {"received": True, "duplicate": True}

    try:
        if event_type in PAID_EVENT_TYPES:
            _apply_paid(db, event)
        elif event_type == EXPIRED_EVENT_TYPE:
            _apply_expired(db, event)
        else:
            logger.info("Unhandled Stripe event type", extra={"event_type": event_type})
        record.handled_at = utcnow()
        db.commit()
    except Exception:
        db.rollback()
        logger.warning(
            "Stripe event processing failed; changes rolled back",
            extra={"event_id": event_id, "event_type": event_type},
        )
        raise

    return {"received": True}


__all__ = ["EXPIRED_EVENT_TYPE", "PAID_EVENT_TYPES", "handle_stripe_webhook", "process_event"]
