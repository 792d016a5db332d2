"""Checkout orchestration and session status schemas."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from giftsplit.models.checkout_session import CheckoutSessionStatus
from giftsplit.schemas.gift import InviteeRead


class CheckoutLinkRead(BaseModel):
    email: str
    amount_cents: int
    stripe_session_id: str
    checkout_url: str
    reused: bool

    model_config = ConfigDict(from_attributes=True)


class LockAndSendRead(BaseModel):
    gift_id: int
    split_locked_at: datetime
    results: list[CheckoutLinkRead]


class CheckoutSessionStatusRead(BaseModel):
    stripe_session_id: str
    status: CheckoutSessionStatus
    amount_total_cents: int | None = None
    created_at: datetime
    paid_at: datetime | None = None
    invitee: InviteeRead | None = None
