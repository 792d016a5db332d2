"""Public join flow: preview a gift and respond to an invitation link."""
from __future__ import annotations

import logging

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftsplit.db import is_unique_violation
from giftsplit.models import Gift, InvitationLink, Invitee, InviteeStatus
from giftsplit.schemas import JoinRespond
from giftsplit.services import invitations as invitation_service
from giftsplit.services.gifts import get_gift_or_404, normalize_email
from giftsplit.utils.audit import log_audit
from giftsplit.utils.errors import http_error

logger = logging.getLogger(__name__)

_DECISION_STATUS = {
    "yes": InviteeStatus.ACCEPTED,
    "no": InviteeStatus.DECLINED,
}
# Records in these states have already answered through the join flow.
_RESPONDED = frozenset({InviteeStatus.ACCEPTED, InviteeStatus.DECLINED})


def _find_invitee(db: Session, gift_id: int, email: str) -> Invitee | None:
    stmt = select(Invitee).where(
        Invitee.gift_id == gift_id,
        func.lower(Invitee.email) == normalize_email(email),
    )
    return db.scalars(stmt).first()


def preview_gift(db: Session, token: str) -> tuple[InvitationLink, Gift, int]:
    """Return the link, its gift and the current invitee count."""

    link = invitation_service.resolve_token(db, token)
    gift = get_gift_or_404(db, link.gift_id)
    invitee_count = db.scalar(
        select(func.count()).select_from(Invitee).where(Invitee.gift_id == gift.id)
    )
    return link, gift, invitee_count or 0


def get_invitee_status(db: Session, token: str, email: str) -> Invitee | None:
    link = invitation_service.resolve_token(db, token)
    return _find_invitee(db, link.gift_id, email)


def respond(db: Session, token: str, payload: JoinRespond) -> tuple[Invitee, bool]:
    """Record a yes/no answer; returns the invitee and whether it was created.

    The first answer is final: switching from yes to no (or back) is a
    conflict, while repeating the same answer updates name and phone.
    """

    link = invitation_service.resolve_token(db, token)
    gift = get_gift_or_404(db, link.gift_id, for_update=True)
    if gift.is_locked:
        raise http_error(
            status.HTTP_409_CONFLICT,
            "GIFT_LOCKED",
            "Gift is already locked and cannot accept new responses.",
        )

    email = normalize_email(payload.email)
    target = _DECISION_STATUS[payload.decision]
    invitee = _find_invitee(db, gift.id, email)
    created = invitee is None

    if invitee is None:
        invitee = Invitee(gift_id=gift.id, email=email)
        try:
            with db.begin_nested():
                invitee.name = payload.name
                invitee.phone = payload.phone
                invitee.status = target
                db.add(invitee)
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            raise http_error(
                status.HTTP_409_CONFLICT,
                "ALREADY_RESPONDED",
                "A response for this email is already being recorded.",
            ) from exc
    else:
        if invitee.status in _RESPONDED and invitee.status != target:
            raise http_error(
                status.HTTP_409_CONFLICT,
                "ALREADY_RESPONDED",
                "This email has already responded to the invitation.",
                {"status": invitee.status.value},
            )
        if invitee.status not in _RESPONDED and invitee.status != InviteeStatus.INVITED:
            raise http_error(
                status.HTTP_409_CONFLICT,
                "INVITEE_NOT_RESPONDABLE",
                "This invitee can no longer respond.",
                {"status": invitee.status.value},
            )
        invitee.email = email
        invitee.name = payload.name
        invitee.phone = payload.phone
        invitee.status = target

    db.flush()
    log_audit(
        db,
        actor="invitee",
        action="INVITEE_RESPONDED",
        entity="Invitee",
        entity_id=invitee.id,
        data={
            "gift_id": gift.id,
            "email": email,
            "decision": payload.decision,
            "created": created,
        },
    )
    db.commit()
    db.refresh(invitee)
    logger.info(
        "Invitation response recorded",
        extra={"gift_id": gift.id, "invitee_id": invitee.id, "status": invitee.status.value},
    )
    return invitee, created


__all__ = ["preview_gift", "get_invitee_status", "respond"]
