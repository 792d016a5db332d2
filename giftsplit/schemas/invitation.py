"""Invitation link schemas."""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InvitationLinkCreate(BaseModel):
    """Either an absolute ``expires_at`` or a relative ``expires_in_days``."""

    expires_at: datetime | None = None
    expires_in_days: int | None = Field(default=None, ge=1, le=365)

    @field_validator("expires_at")
    @classmethod
    def _ensure_timezone(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class InvitationLinkRead(BaseModel):
    id: int
    gift_id: int
    token: str
    created_at: datetime
    expires_at: datetime | None = None
    revoked_at: datetime | None = None
    url: str

    model_config = ConfigDict(from_attributes=True)
