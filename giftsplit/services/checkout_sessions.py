"""Persistence helpers for Stripe Checkout session records."""
from __future__ import annotations

import logging
from datetime import datetime

from fastapi import status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from giftsplit.models import CheckoutSession, CheckoutSessionStatus
from giftsplit.utils.errors import http_error
from giftsplit.utils.time import utcnow

logger = logging.getLogger(__name__)


def get_open_for_invitee(db: Session, invitee_id: int) -> CheckoutSession | None:
    """Return the invitee's session still awaiting payment, if any."""

    stmt = (
        select(CheckoutSession)
        .where(
            CheckoutSession.invitee_id == invitee_id,
            CheckoutSession.status == CheckoutSessionStatus.CREATED,
        )
        .order_by(CheckoutSession.created_at.desc(), CheckoutSession.id.desc())
    )
    return db.scalars(stmt).first()


def get_by_stripe_session_id(
    db: Session, stripe_session_id: str, *, for_update: bool = False
) -> CheckoutSession | None:
    stmt = select(CheckoutSession).where(CheckoutSession.stripe_session_id == stripe_session_id)
    if for_update:
        stmt = stmt.with_for_update()
    return db.scalars(stmt).first()


def record_created(db: Session, invitee_id: int, stripe_session_id: str) -> CheckoutSession:
    """Insert a ``created`` session inside a savepoint.

    Raises ``IntegrityError`` when the invitee already holds an open session;
    only the savepoint is rolled back so the caller can recover.
    """

    session = CheckoutSession(
        invitee_id=invitee_id,
        stripe_session_id=stripe_session_id,
        status=CheckoutSessionStatus.CREATED,
    )
    with db.begin_nested():
        db.add(session)
    return session


def mark_paid(
    db: Session,
    session: CheckoutSession,
    *,
    amount_total_cents: int | None,
    payment_intent_id: str | None,
    paid_at: datetime | None = None,
) -> CheckoutSession:
    """Move a session to ``paid``; repeated calls keep the first payment data."""

    if session.status == CheckoutSessionStatus.PAID:
        return session
    session.status = CheckoutSessionStatus.PAID
    session.paid_at = paid_at or utcnow()
    session.amount_total_cents = amount_total_cents
    session.stripe_payment_intent_id = payment_intent_id
    return session


def mark_expired(db: Session, session: CheckoutSession) -> bool:
    """Expire an open session. Returns False when it was not open."""

    if session.status != CheckoutSessionStatus.CREATED:
        return False
    session.status = CheckoutSessionStatus.EXPIRED
    return True


def get_checkout_session_status(db: Session, stripe_session_id: str) -> CheckoutSession:
    stmt = (
        select(CheckoutSession)
        .options(selectinload(CheckoutSession.invitee))
        .where(CheckoutSession.stripe_session_id == stripe_session_id)
    )
    session = db.scalars(stmt).first()
    if session is None:
        raise http_error(
            status.HTTP_404_NOT_FOUND,
            "CHECKOUT_SESSION_NOT_FOUND",
            "Checkout session not found.",
        )
    return session


__all__ = [
    "get_by_stripe_session_id",
    "get_checkout_session_status",
    "get_open_for_invitee",
    "mark_expired",
    "mark_paid",
    "record_created",
]
