"""Gift aggregate and its participants."""
import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, enum_values


class InviteeStatus(str, enum.Enum):
    """Lifecycle of a participant, from invitation to payment."""

    INVITED = "invited"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CHECKOUT_CREATED = "checkout_created"
    PAID = "paid"
    CANCELED = "canceled"
    EXPIRED = "expired"


# Participants in these states never receive a share of the split.
EXCLUDED_FROM_SPLIT = frozenset({InviteeStatus.DECLINED, InviteeStatus.CANCELED})


class Gift(Base):
    """A shared payment goal with a fixed total and currency."""

    __tablename__ = "gifts"
    __table_args__ = (
        CheckConstraint("total_amount_cents >= 0", name="ck_gifts_total_non_negative"),
        Index("ix_gifts_created_at", "created_at"),
    )

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    split_locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    invitees = relationship(
        "Invitee",
        back_populates="gift",
        cascade="all, delete-orphan",
    )
    invitation_links = relationship(
        "InvitationLink", back_populates="gift", cascade="all, delete-orphan"
    )

    @property
    def is_locked(self) -> bool:
        return self.split_locked_at is not None


class Invitee(Base):
    """A person invited to contribute to a gift."""

    __tablename__ = "gift_invitees"
    __table_args__ = (
        UniqueConstraint("gift_id", "email", name="uq_gift_invitees_gift_email"),
        CheckConstraint(
            "amount_cents IS NULL OR amount_cents >= 0",
            name="ck_gift_invitees_amount_non_negative",
        ),
        Index("ix_gift_invitees_gift_created", "gift_id", "created_at"),
        Index("ix_gift_invitees_status", "status"),
    )

    gift_id: Mapped[int] = mapped_column(ForeignKey("gifts.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    # Always stored trimmed and lower-cased so the unique constraint is case-insensitive.
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    amount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[InviteeStatus] = mapped_column(
        SqlEnum(
            InviteeStatus,
            name="invitee_status",
            native_enum=False,
            length=32,
            values_callable=enum_values,
        ),
        nullable=False,
        default=InviteeStatus.INVITED,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    gift = relationship("Gift", back_populates="invitees")
    checkout_sessions = relationship(
        "CheckoutSession", back_populates="invitee", cascade="all, delete-orphan"
    )
