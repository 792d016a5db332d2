"""Shareable invitation links."""
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from giftsplit.utils.time import ensure_utc

from .base import Base


class InvitationLink(Base):
    """A random token that lets anyone holding it respond to a gift."""

    __tablename__ = "gift_invitation_links"
    __table_args__ = (Index("ix_gift_invitation_links_gift_created", "gift_id", "created_at"),)

    gift_id: Mapped[int] = mapped_column(ForeignKey("gifts.id", ondelete="CASCADE"), nullable=False)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    gift = relationship("Gift", back_populates="invitation_links")

    def is_expired(self, now: datetime) -> bool:
        expires_at = ensure_utc(self.expires_at)
        return expires_at is not None and expires_at <= now

    def is_active(self, now: datetime) -> bool:
        return self.revoked_at is None and not self.is_expired(now)
