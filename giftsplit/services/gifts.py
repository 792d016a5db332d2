"""Gift aggregate and participant ledger services."""
from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftsplit.config import get_settings
from giftsplit.db import is_unique_violation
from giftsplit.models import EXCLUDED_FROM_SPLIT, Gift, InvitationLink, Invitee, InviteeStatus
from giftsplit.schemas import GiftCreate
from giftsplit.services import invitations as invitation_service
from giftsplit.services.split import split_evenly
from giftsplit.utils.audit import log_audit
from giftsplit.utils.errors import http_error
from giftsplit.utils.time import utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class GiftTotals:
    """Status counts and money totals over a gift's invitees."""

    counts: dict[str, int] = field(default_factory=lambda: {s.value: 0 for s in InviteeStatus})
    assigned_total_cents: int = 0
    paid_total_cents: int = 0

    def add(self, invitee: Invitee) -> None:
        self.counts[invitee.status.value] += 1
        if invitee.amount_cents is None:
            return
        self.assigned_total_cents += invitee.amount_cents
        if invitee.status == InviteeStatus.PAID:
            self.paid_total_cents += invitee.amount_cents

    def remaining_cents(self, gift: Gift) -> int:
        return max(gift.total_amount_cents - self.paid_total_cents, 0)


@dataclass
class GiftOverview:
    gift: Gift
    totals: GiftTotals
    per_person_preview_cents: int | None
    invitees: list[Invitee]


def get_gift_or_404(db: Session, gift_id: int, *, for_update: bool = False) -> Gift:
    stmt = select(Gift).where(Gift.id == gift_id)
    if for_update:
        stmt = stmt.with_for_update()
    gift = db.scalars(stmt).first()
    if gift is None:
        raise http_error(status.HTTP_404_NOT_FOUND, "GIFT_NOT_FOUND", "Gift not found.")
    return gift


def create_gift(
    db: Session, payload: GiftCreate, *, actor: str = "organizer"
) -> tuple[Gift, InvitationLink]:
    """Create a gift together with its first invitation link."""

    gift = Gift(
        name=payload.name,
        currency=payload.currency,
        total_amount_cents=payload.total_amount_cents,
    )
    db.add(gift)
    db.flush()

    expires_at = invitation_service.resolve_expiry(expires_at=None, expires_in_days=None)
    link = invitation_service.insert_link(db, gift.id, expires_at=expires_at)
    log_audit(
        db,
        actor=actor,
        action="GIFT_CREATED",
        entity="Gift",
        entity_id=gift.id,
        data={
            "total_amount_cents": gift.total_amount_cents,
            "currency": gift.currency,
            "invitation_link_id": link.id,
        },
    )
    db.commit()
    db.refresh(gift)
    db.refresh(link)
    logger.info("Gift created", extra={"gift_id": gift.id})
    return gift, link


def list_invitees(db: Session, gift_id: int) -> list[Invitee]:
    stmt = (
        select(Invitee)
        .where(Invitee.gift_id == gift_id)
        .order_by(Invitee.created_at, Invitee.id)
    )
    return list(db.scalars(stmt))


def list_eligible_invitees(db: Session, gift_id: int) -> list[Invitee]:
    """Participants sharing the cost, in the canonical assignment order."""

    stmt = (
        select(Invitee)
        .where(Invitee.gift_id == gift_id, Invitee.status.not_in(list(EXCLUDED_FROM_SPLIT)))
        .order_by(Invitee.created_at, Invitee.id)
    )
    return list(db.scalars(stmt))


def _totals(invitees: Iterable[Invitee]) -> GiftTotals:
    totals = GiftTotals()
    for invitee in invitees:
        totals.add(invitee)
    return totals


def list_gifts(db: Session) -> list[tuple[Gift, GiftTotals]]:
    """Return every gift, newest first, with its aggregated counts."""

    gifts = list(db.scalars(select(Gift).order_by(Gift.created_at.desc(), Gift.id.desc())))
    if not gifts:
        return []

    by_gift: dict[int, GiftTotals] = {gift.id: GiftTotals() for gift in gifts}
    invitees = db.scalars(select(Invitee).where(Invitee.gift_id.in_(list(by_gift))))
    for invitee in invitees:
        by_gift[invitee.gift_id].add(invitee)
    return [(gift, by_gift[gift.id]) for gift in gifts]


def get_gift_summary(db: Session, gift_id: int) -> GiftOverview:
    gift = get_gift_or_404(db, gift_id)
    invitees = list_invitees(db, gift_id)
    eligible_count = sum(1 for inv in invitees if inv.status not in EXCLUDED_FROM_SPLIT)
    preview = split_evenly(gift.total_amount_cents, eligible_count)[0] if eligible_count else None
    return GiftOverview(
        gift=gift,
        totals=_totals(invitees),
        per_person_preview_cents=preview,
        invitees=invitees,
    )


def add_invitees(
    db: Session, gift_id: int, emails: Iterable[str], *, actor: str = "organizer"
) -> list[Invitee]:
    """Invite people by email while the gift is still open."""

    gift = get_gift_or_404(db, gift_id, for_update=True)
    if gift.is_locked:
        raise http_error(
            status.HTTP_409_CONFLICT,
            "GIFT_LOCKED",
            "Gift is already locked; cannot add invitees.",
        )

    normalized = list(dict.fromkeys(normalize_email(email) for email in emails))
    existing = list(
        db.scalars(
            select(Invitee.email).where(Invitee.gift_id == gift_id, Invitee.email.in_(normalized))
        )
    )
    if existing:
        raise http_error(
            status.HTTP_409_CONFLICT,
            "INVITEE_ALREADY_EXISTS",
            "Some emails are already invited to this gift.",
            {"emails": sorted(existing)},
        )

    invitees = [
        Invitee(gift_id=gift_id, email=email, status=InviteeStatus.INVITED) for email in normalized
    ]
    try:
        with db.begin_nested():
            db.add_all(invitees)
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            raise
        raise http_error(
            status.HTTP_409_CONFLICT,
            "INVITEE_ALREADY_EXISTS",
            "Some emails are already invited to this gift.",
        ) from exc

    log_audit(
        db,
        actor=actor,
        action="INVITEES_ADDED",
        entity="Gift",
        entity_id=gift_id,
        data={"count": len(invitees)},
    )
    db.commit()
    logger.info("Invitees added", extra={"gift_id": gift_id, "count": len(invitees)})
    return invitees


def _try_lock(db: Session, gift_id: int) -> bool:
    """Compare-and-set ``split_locked_at`` from NULL to now.

    Returns True only for the caller whose UPDATE matched the row.
    """

    now = utcnow()
    result = db.execute(
        update(Gift)
        .where(Gift.id == gift_id, Gift.split_locked_at.is_(None))
        .values(split_locked_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _assign_amounts(gift: Gift, eligible: list[Invitee]) -> list[int]:
    amounts = split_evenly(gift.total_amount_cents, len(eligible))
    for invitee, amount in zip(eligible, amounts):
        if invitee.amount_cents is None:
            invitee.amount_cents = amount
    return amounts


def _wait_for_assigned_amounts(db: Session, gift_id: int) -> list[Invitee]:
    """Re-read until the lock winner's amounts are visible."""

    settings = get_settings()
    attempts = max(settings.LOCK_ASSIGN_WAIT_ATTEMPTS, 1)
    for attempt in range(attempts):
        db.expire_all()
        eligible = list_eligible_invitees(db, gift_id)
        if eligible and all(inv.amount_cents is not None for inv in eligible):
            return eligible
        if attempt + 1 < attempts:
            time.sleep(settings.LOCK_ASSIGN_WAIT_SECONDS)

    logger.error("Split amounts missing after lock", extra={"gift_id": gift_id})
    raise http_error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "SPLIT_ASSIGNMENT_MISSING",
        "Gift is locked but participant amounts are not assigned.",
    )


def lock_and_assign(db: Session, gift_id: int, *, actor: str = "organizer") -> tuple[Gift, list[Invitee]]:
    """Freeze the participant list and assign each share exactly once.

    Only the caller that wins the NULL -> timestamp transition computes the
    split; every other caller reads the amounts it wrote.
    """

    gift = get_gift_or_404(db, gift_id)
    if not list_eligible_invitees(db, gift_id):
        raise http_error(
            status.HTTP_409_CONFLICT,
            "NO_ELIGIBLE_INVITEES",
            "No invitees to split with.",
        )

    won = not gift.is_locked and _try_lock(db, gift_id)
    if won:
        eligible = list_eligible_invitees(db, gift_id)
        if not eligible:
            db.rollback()
            raise http_error(
                status.HTTP_409_CONFLICT,
                "NO_ELIGIBLE_INVITEES",
                "No invitees to split with.",
            )
        amounts = _assign_amounts(gift, eligible)
        log_audit(
            db,
            actor=actor,
            action="GIFT_LOCKED",
            entity="Gift",
            entity_id=gift_id,
            data={"participants": len(eligible), "amounts": amounts},
        )
        db.commit()
        logger.info(
            "Gift locked and split assigned",
            extra={"gift_id": gift_id, "participants": len(eligible)},
        )
    else:
        logger.info("Gift already locked; reading assigned split", extra={"gift_id": gift_id})
        eligible = _wait_for_assigned_amounts(db, gift_id)

    db.refresh(gift)
    return gift, eligible


__all__ = [
    "GiftOverview",
    "GiftTotals",
    "add_invitees",
    "create_gift",
    "get_gift_or_404",
    "get_gift_summary",
    "list_eligible_invitees",
    "list_gifts",
    "list_invitees",
    "lock_and_assign",
    "normalize_email",
]
