"""Public join-flow schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from giftsplit.schemas.gift import InviteeRead


class JoinGift(BaseModel):
    id: int
    name: str
    currency: str
    total_amount_cents: int
    split_locked_at: datetime | None = None
    created_at: datetime
    invitee_count: int


class JoinPreview(BaseModel):
    token: str
    created_at: datetime
    expires_at: datetime | None = None
    gift: JoinGift


class JoinInviteeStatus(BaseModel):
    exists: bool
    invitee: InviteeRead | None = None


class JoinRespond(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(min_length=1, max_length=40)
    decision: Literal["yes", "no"]

    @field_validator("name", "phone")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Value must not be blank.")
        return stripped
