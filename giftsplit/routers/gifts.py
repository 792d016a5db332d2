"""Organizer endpoints for gifts, invitees and invitation links."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from giftsplit.db import get_db
from giftsplit.models import Gift, InvitationLink, Invitee
from giftsplit.schemas import (
    AmountTotals,
    CheckoutLinkRead,
    GiftCreate,
    GiftCreated,
    GiftListItem,
    GiftRead,
    GiftSummary,
    InvitationLinkCreate,
    InvitationLinkRead,
    InviteeRead,
    InviteesAdd,
    LockAndSendRead,
    StatusCounts,
)
from giftsplit.security import require_organizer
from giftsplit.services import checkout as checkout_service
from giftsplit.services import gifts as gift_service
from giftsplit.services import invitations as invitation_service
from giftsplit.services.gifts import GiftTotals

router = APIRouter(prefix="/gifts", tags=["gifts"])


def _link_read(link: InvitationLink) -> InvitationLinkRead:
    return InvitationLinkRead(
        id=link.id,
        gift_id=link.gift_id,
        token=link.token,
        created_at=link.created_at,
        expires_at=link.expires_at,
        revoked_at=link.revoked_at,
        url=invitation_service.link_url(link.token),
    )


def _amounts(gift: Gift, totals: GiftTotals) -> AmountTotals:
    return AmountTotals(
        assigned_total_cents=totals.assigned_total_cents,
        paid_total_cents=totals.paid_total_cents,
        remaining_cents=totals.remaining_cents(gift),
    )


@router.post("", response_model=GiftCreated, status_code=status.HTTP_201_CREATED)
def create_gift(
    payload: GiftCreate,
    db: Session = Depends(get_db),
    actor: str = Depends(require_organizer),
) -> GiftCreated:
    gift, link = gift_service.create_gift(db, payload, actor=actor)
    return GiftCreated(gift=GiftRead.model_validate(gift), invitation_link=_link_read(link))


@router.get("", response_model=list[GiftListItem])
def list_gifts(
    db: Session = Depends(get_db),
    actor: str = Depends(require_organizer),
) -> list[GiftListItem]:
    items: list[GiftListItem] = []
    for gift, totals in gift_service.list_gifts(db):
        base = GiftRead.model_validate(gift)
        items.append(
            GiftListItem(
                **base.model_dump(),
                counts=StatusCounts(**totals.counts),
                amounts=_amounts(gift, totals),
            )
        )
    return items


@router.get("/{gift_id}", response_model=GiftSummary)
def get_gift(
    gift_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(require_organizer),
) -> GiftSummary:
    overview = gift_service.get_gift_summary(db, gift_id)
    return GiftSummary(
        gift=GiftRead.model_validate(overview.gift),
        counts=StatusCounts(**overview.totals.counts),
        amounts=_amounts(overview.gift, overview.totals),
        per_person_preview_cents=overview.per_person_preview_cents,
        invitees=[InviteeRead.model_validate(inv) for inv in overview.invitees],
    )


@router.post(
    "/{gift_id}/invitees",
    response_model=list[InviteeRead],
    status_code=status.HTTP_201_CREATED,
)
def add_invitees(
    gift_id: int,
    payload: InviteesAdd,
    db: Session = Depends(get_db),
    actor: str = Depends(require_organizer),
) -> list[Invitee]:
    return gift_service.add_invitees(db, gift_id, payload.emails, actor=actor)


@router.post(
    "/{gift_id}/invitation-links",
    response_model=InvitationLinkRead,
    status_code=status.HTTP_201_CREATED,
)
def create_invitation_link(
    gift_id: int,
    payload: InvitationLinkCreate | None = None,
    db: Session = Depends(get_db),
    actor: str = Depends(require_organizer),
) -> InvitationLinkRead:
    payload = payload or InvitationLinkCreate()
    link = invitation_service.create_invitation_link(
        db,
        gift_id,
        expires_at=payload.expires_at,
        expires_in_days=payload.expires_in_days,
        actor=actor,
    )
    return _link_read(link)


@router.get("/{gift_id}/invitation-links/latest", response_model=InvitationLinkRead)
def get_latest_invitation_link(
    gift_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(require_organizer),
) -> InvitationLinkRead:
    return _link_read(invitation_service.get_latest_active_link(db, gift_id))


@router.post(
    "/{gift_id}/invitation-links/{link_id}/revoke",
    response_model=InvitationLinkRead,
)
def revoke_invitation_link(
    gift_id: int,
    link_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(require_organizer),
) -> InvitationLinkRead:
    link = invitation_service.revoke_invitation_link(db, gift_id, link_id, actor=actor)
    return _link_read(link)


@router.post("/{gift_id}/lock-and-send", response_model=LockAndSendRead)
def lock_and_send(
    gift_id: int,
    db: Session = Depends(get_db),
    actor: str = Depends(require_organizer),
) -> LockAndSendRead:
    gift, results = checkout_service.lock_and_send(db, gift_id, actor=actor)
    return LockAndSendRead(
        gift_id=gift.id,
        split_locked_at=gift.split_locked_at,
        results=[CheckoutLinkRead.model_validate(result) for result in results],
    )
