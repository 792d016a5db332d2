"""Checkout session status lookup used by the payment return page."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from giftsplit.db import get_db
from giftsplit.schemas import CheckoutSessionStatusRead, InviteeRead
from giftsplit.services import checkout_sessions as session_repo

router = APIRouter(prefix="/checkout-sessions", tags=["checkout"])


@router.get("/{stripe_session_id}", response_model=CheckoutSessionStatusRead)
def get_checkout_session(
    stripe_session_id: str,
    db: Session = Depends(get_db),
) -> CheckoutSessionStatusRead:
    session = session_repo.get_checkout_session_status(db, stripe_session_id)
    invitee = session.invitee
    return CheckoutSessionStatusRead(
        stripe_session_id=session.stripe_session_id,
        status=session.status,
        amount_total_cents=session.amount_total_cents,
        created_at=session.created_at,
        paid_at=session.paid_at,
        invitee=InviteeRead.model_validate(invitee) if invitee is not None else None,
    )
