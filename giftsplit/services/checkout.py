"""Lock a gift and hand every participant a payment link."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import stripe
from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftsplit.config import Settings, get_settings
from giftsplit.db import is_unique_violation
from giftsplit.models import Gift, Invitee, InviteeStatus
from giftsplit.services import checkout_sessions as session_repo
from giftsplit.services.gifts import lock_and_assign
from giftsplit.services.notifications import Notifier, get_notifier, send_payment_email
from giftsplit.services.psp_stripe import StripeClient
from giftsplit.utils.audit import log_audit
from giftsplit.utils.errors import http_error

logger = logging.getLogger(__name__)


@dataclass
class CheckoutLinkResult:
    email: str
    amount_cents: int
    stripe_session_id: str
    checkout_url: str
    reused: bool


def _stripe_client(settings: Settings) -> StripeClient:
    if not settings.STRIPE_ENABLED:
        raise http_error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "STRIPE_DISABLED",
            "Stripe integration is disabled.",
        )
    try:
        return StripeClient(settings)
    except RuntimeError as exc:
        logger.error("Stripe client configuration error", exc_info=True)
        raise http_error(
            status.HTTP_503_SERVICE_UNAVAILABLE, "STRIPE_NOT_CONFIGURED", str(exc)
        ) from exc


def _psp_unavailable(exc: Exception, invitee_id: int) -> Exception:
    logger.error(
        "Stripe checkout call failed",
        extra={"invitee_id": invitee_id, "error": str(exc)},
    )
    return http_error(
        status.HTTP_502_BAD_GATEWAY,
        "PSP_UNAVAILABLE",
        "Payment provider request failed.",
        {"invitee_id": invitee_id},
    )


def _live_url(client: StripeClient, stripe_session_id: str, invitee_id: int) -> str:
    try:
        session: Any = client.retrieve_checkout_session(stripe_session_id)
    except stripe.StripeError as exc:
        raise _psp_unavailable(exc, invitee_id) from exc
    return getattr(session, "url", None) or ""


def _expire_orphan(client: StripeClient, stripe_session_id: str) -> None:
    try:
        client.expire_checkout_session(stripe_session_id)
    except stripe.StripeError:
        logger.warning(
            "Could not expire orphaned checkout session",
            extra={"stripe_session_id": stripe_session_id},
            exc_info=True,
        )


def _lock_invitee(db: Session, invitee_id: int) -> Invitee:
    stmt = (
        select(Invitee)
        .where(Invitee.id == invitee_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.scalars(stmt).one()


def _reuse(
    db: Session, client: StripeClient, invitee: Invitee, stripe_session_id: str
) -> CheckoutLinkResult:
    url = _live_url(client, stripe_session_id, invitee.id)
    result = CheckoutLinkResult(
        email=invitee.email,
        amount_cents=invitee.amount_cents,
        stripe_session_id=stripe_session_id,
        checkout_url=url,
        reused=True,
    )
    db.commit()
    return result


def _send_to_invitee(
    db: Session,
    client: StripeClient,
    notifier: Notifier,
    gift: Gift,
    invitee_id: int,
    *,
    actor: str,
) -> CheckoutLinkResult | None:
    invitee = _lock_invitee(db, invitee_id)
    if invitee.status == InviteeStatus.PAID:
        db.commit()
        return None
    if invitee.amount_cents is None:
        db.rollback()
        logger.error("Invitee has no assigned amount", extra={"invitee_id": invitee_id})
        raise http_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INVITEE_AMOUNT_MISSING",
            "Invitee amount is missing after lock.",
            {"invitee_id": invitee_id},
        )

    existing = session_repo.get_open_for_invitee(db, invitee.id)
    if existing is not None:
        return _reuse(db, client, invitee, existing.stripe_session_id)

    try:
        created: Any = client.create_checkout_session(
            email=invitee.email,
            amount_cents=invitee.amount_cents,
            currency=gift.currency,
            gift_name=gift.name,
            metadata={"gift_id": gift.id, "invitee_id": invitee.id},
        )
    except stripe.StripeError as exc:
        db.rollback()
        raise _psp_unavailable(exc, invitee.id) from exc

    stripe_session_id = created.id
    checkout_url = getattr(created, "url", None)
    if not checkout_url:
        db.rollback()
        _expire_orphan(client, stripe_session_id)
        logger.error(
            "Stripe returned a checkout session without URL",
            extra={"invitee_id": invitee_id, "stripe_session_id": stripe_session_id},
        )
        raise http_error(
            status.HTTP_502_BAD_GATEWAY,
            "CHECKOUT_URL_MISSING",
            "Payment provider did not return a checkout URL.",
            {"invitee_id": invitee_id},
        )

    try:
        session_repo.record_created(db, invitee.id, stripe_session_id)
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            raise
        _expire_orphan(client, stripe_session_id)
        winner = session_repo.get_open_for_invitee(db, invitee.id)
        if winner is None:
            raise
        logger.info(
            "Concurrent checkout session detected; reusing winner",
            extra={"invitee_id": invitee.id, "stripe_session_id": winner.stripe_session_id},
        )
        return _reuse(db, client, invitee, winner.stripe_session_id)

    invitee.status = InviteeStatus.CHECKOUT_CREATED
    log_audit(
        db,
        actor=actor,
        action="CHECKOUT_SESSION_CREATED",
        entity="Invitee",
        entity_id=invitee.id,
        data={
            "gift_id": gift.id,
            "amount_cents": invitee.amount_cents,
            "stripe_session_id": stripe_session_id,
        },
    )
    result = CheckoutLinkResult(
        email=invitee.email,
        amount_cents=invitee.amount_cents,
        stripe_session_id=stripe_session_id,
        checkout_url=checkout_url,
        reused=False,
    )
    db.commit()

    send_payment_email(
        notifier,
        recipient=result.email,
        gift_name=gift.name,
        amount_cents=result.amount_cents,
        currency=gift.currency,
        checkout_url=checkout_url,
    )
    return result


def lock_and_send(
    db: Session, gift_id: int, *, actor: str = "organizer"
) -> tuple[Gift, list[CheckoutLinkResult]]:
    """Lock the gift, then create or reuse one checkout session per participant.

    Safe to call repeatedly: open sessions are reused without re-sending
    email and paid participants are skipped.
    """

    settings = get_settings()
    client = _stripe_client(settings)
    gift, eligible = lock_and_assign(db, gift_id, actor=actor)
    notifier = get_notifier(settings)

    results: list[CheckoutLinkResult] = []
    for invitee_id in [invitee.id for invitee in eligible]:
        result = _send_to_invitee(db, client, notifier, gift, invitee_id, actor=actor)
        if result is not None:
            results.append(result)

    logger.info(
        "Lock and send completed",
        extra={
            "gift_id": gift.id,
            "created": sum(1 for r in results if not r.reused),
            "reused": sum(1 for r in results if r.reused),
        },
    )
    return gift, results


__all__ = ["CheckoutLinkResult", "lock_and_send"]
