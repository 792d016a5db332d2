"""Gift and invitee schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from giftsplit.models.gift import InviteeStatus
from giftsplit.schemas.invitation import InvitationLinkRead


class GiftCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    total_amount_cents: int = Field(gt=0, le=5_000_000)
    currency: str = Field(default="usd", pattern=r"^[A-Za-z]{3}$")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Gift name must not be blank.")
        return stripped

    @field_validator("currency")
    @classmethod
    def _normalise_currency(cls, value: str) -> str:
        return value.lower()


class GiftRead(BaseModel):
    id: int
    name: str
    currency: str
    total_amount_cents: int
    split_locked_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GiftCreated(BaseModel):
    gift: GiftRead
    invitation_link: InvitationLinkRead


class InviteesAdd(BaseModel):
    emails: list[EmailStr] = Field(min_length=1, max_length=100)


class InviteeRead(BaseModel):
    id: int
    gift_id: int
    name: str | None = None
    email: str
    phone: str | None = None
    status: InviteeStatus
    amount_cents: int | None = None
    created_at: datetime
    paid_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class StatusCounts(BaseModel):
    invited: int = 0
    accepted: int = 0
    declined: int = 0
    checkout_created: int = 0
    paid: int = 0
    canceled: int = 0
    expired: int = 0


class AmountTotals(BaseModel):
    assigned_total_cents: int
    paid_total_cents: int
    remaining_cents: int


class GiftListItem(GiftRead):
    counts: StatusCounts
    amounts: AmountTotals


class GiftSummary(BaseModel):
    gift: GiftRead
    counts: StatusCounts
    amounts: AmountTotals
    per_person_preview_cents: int | None = None
    invitees: list[InviteeRead]
