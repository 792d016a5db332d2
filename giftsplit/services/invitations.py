"""Invitation link issuance, lookup and revocation."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftsplit.config import get_settings
from giftsplit.db import is_unique_violation
from giftsplit.models import Gift, InvitationLink
from giftsplit.services.tokens import generate_invitation_token
from giftsplit.utils.audit import log_audit
from giftsplit.utils.errors import http_error
from giftsplit.utils.time import utcnow

logger = logging.getLogger(__name__)

MAX_TOKEN_ATTEMPTS = 3


def link_url(token: str) -> str:
    """Return the public join URL for ``token``."""

    return f"{get_settings().APP_BASE_URL}/join/{token}"


def resolve_expiry(
    *,
    expires_at: datetime | None,
    expires_in_days: int | None,
    now: datetime | None = None,
) -> datetime:
    """Turn the absolute/relative expiry policy into a timestamp."""

    if expires_at is not None and expires_in_days is not None:
        raise http_error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "EXPIRY_POLICY_CONFLICT",
            "Provide either expires_at or expires_in_days, not both.",
        )
    if expires_at is not None:
        return expires_at
    days = expires_in_days if expires_in_days is not None else get_settings().INVITATION_LINK_DEFAULT_DAYS
    return (now or utcnow()) + timedelta(days=days)


def insert_link(db: Session, gift_id: int, *, expires_at: datetime | None) -> InvitationLink:
    """Insert a link with a fresh token, retrying token collisions.

    Each attempt runs in its own savepoint so a collision does not discard
    the caller's pending work. The caller commits.
    """

    for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
        link = InvitationLink(
            gift_id=gift_id,
            token=generate_invitation_token(),
            expires_at=expires_at,
        )
        try:
            with db.begin_nested():
                db.add(link)
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            logger.warning(
                "Invitation token collision",
                extra={"gift_id": gift_id, "attempt": attempt},
            )
            continue
        return link

    logger.error("Invitation token retries exhausted", extra={"gift_id": gift_id})
    raise http_error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INVITATION_TOKEN_EXHAUSTED",
        "Failed to generate a unique invitation token.",
    )


def _get_gift_or_404(db: Session, gift_id: int) -> Gift:
    gift = db.get(Gift, gift_id)
    if gift is None:
        raise http_error(status.HTTP_404_NOT_FOUND, "GIFT_NOT_FOUND", "Gift not found.")
    return gift


def create_invitation_link(
    db: Session,
    gift_id: int,
    *,
    expires_at: datetime | None = None,
    expires_in_days: int | None = None,
    actor: str = "organizer",
) -> InvitationLink:
    """Issue a new invitation link for an existing gift."""

    _get_gift_or_404(db, gift_id)
    resolved = resolve_expiry(expires_at=expires_at, expires_in_days=expires_in_days)
    link = insert_link(db, gift_id, expires_at=resolved)
    log_audit(
        db,
        actor=actor,
        action="INVITATION_LINK_CREATED",
        entity="InvitationLink",
        entity_id=link.id,
        data={"gift_id": gift_id, "expires_at": resolved.isoformat()},
    )
    db.commit()
    db.refresh(link)
    logger.info("Invitation link created", extra={"gift_id": gift_id, "link_id": link.id})
    return link


def get_latest_active_link(db: Session, gift_id: int) -> InvitationLink:
    """Return the newest link that is neither revoked nor expired."""

    _get_gift_or_404(db, gift_id)
    now = utcnow()
    stmt = (
        select(InvitationLink)
        .where(InvitationLink.gift_id == gift_id, InvitationLink.revoked_at.is_(None))
        .order_by(InvitationLink.created_at.desc(), InvitationLink.id.desc())
    )
    for link in db.scalars(stmt):
        if link.is_active(now):
            return link
    raise http_error(
        status.HTTP_404_NOT_FOUND,
        "INVITATION_LINK_NOT_ACTIVE",
        "No active invitation link found.",
    )


def revoke_invitation_link(
    db: Session, gift_id: int, link_id: int, *, actor: str = "organizer"
) -> InvitationLink:
    """Revoke a link; revoking twice keeps the first timestamp."""

    _get_gift_or_404(db, gift_id)
    link = db.get(InvitationLink, link_id)
    if link is None or link.gift_id != gift_id:
        raise http_error(
            status.HTTP_404_NOT_FOUND, "INVITATION_LINK_NOT_FOUND", "Invitation link not found."
        )
    if link.revoked_at is not None:
        return link

    link.revoked_at = utcnow()
    log_audit(
        db,
        actor=actor,
        action="INVITATION_LINK_REVOKED",
        entity="InvitationLink",
        entity_id=link.id,
        data={"gift_id": gift_id},
    )
    db.commit()
    db.refresh(link)
    logger.info("Invitation link revoked", extra={"gift_id": gift_id, "link_id": link.id})
    return link


def resolve_token(db: Session, token: str) -> InvitationLink:
    """Look up a link by token, distinguishing unknown from revoked/expired."""

    link = db.scalars(select(InvitationLink).where(InvitationLink.token == token)).first()
    if link is None:
        raise http_error(
            status.HTTP_404_NOT_FOUND, "INVITATION_LINK_NOT_FOUND", "Invitation link not found."
        )
    if link.revoked_at is not None:
        raise http_error(
            status.HTTP_410_GONE, "INVITATION_LINK_REVOKED", "Invitation link has been revoked."
        )
    if link.is_expired(utcnow()):
        raise http_error(
            status.HTTP_410_GONE, "INVITATION_LINK_EXPIRED", "Invitation link has expired."
        )
    return link


__all__ = [
    "MAX_TOKEN_ATTEMPTS",
    "create_invitation_link",
    "get_latest_active_link",
    "insert_link",
    "link_url",
    "resolve_expiry",
    "resolve_token",
    "revoke_invitation_link",
]
