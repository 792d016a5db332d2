"""Public join-flow endpoints reached through an invitation link."""
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import EmailStr
from sqlalchemy.orm import Session

from giftsplit.db import get_db
from giftsplit.schemas import InviteeRead, JoinGift, JoinInviteeStatus, JoinPreview, JoinRespond
from giftsplit.services import join as join_service

router = APIRouter(prefix="/join", tags=["join"])


@router.get("/{token}", response_model=JoinPreview)
def preview(token: str, db: Session = Depends(get_db)) -> JoinPreview:
    link, gift, invitee_count = join_service.preview_gift(db, token)
    return JoinPreview(
        token=link.token,
        created_at=link.created_at,
        expires_at=link.expires_at,
        gift=JoinGift(
            id=gift.id,
            name=gift.name,
            currency=gift.currency,
            total_amount_cents=gift.total_amount_cents,
            split_locked_at=gift.split_locked_at,
            created_at=gift.created_at,
            invitee_count=invitee_count,
        ),
    )


@router.get("/{token}/invitee", response_model=JoinInviteeStatus)
def invitee_status(
    token: str,
    email: EmailStr = Query(...),
    db: Session = Depends(get_db),
) -> JoinInviteeStatus:
    invitee = join_service.get_invitee_status(db, token, email)
    if invitee is None:
        return JoinInviteeStatus(exists=False)
    return JoinInviteeStatus(exists=True, invitee=InviteeRead.model_validate(invitee))


@router.post("/{token}/respond", response_model=InviteeRead)
def respond(
    token: str,
    payload: JoinRespond,
    response: Response,
    db: Session = Depends(get_db),
) -> InviteeRead:
    invitee, created = join_service.respond(db, token, payload)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return InviteeRead.model_validate(invitee)
