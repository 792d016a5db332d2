"""Stripe Checkout session records."""
import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum as SqlEnum, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, enum_values


class CheckoutSessionStatus(str, enum.Enum):
    """Possible statuses for a hosted checkout session."""

    CREATED = "created"
    PAID = "paid"
    EXPIRED = "expired"


class CheckoutSession(Base):
    """A provider-hosted, single-use payment page issued to one invitee."""

    __tablename__ = "checkout_sessions"
    __table_args__ = (
        Index("ix_checkout_sessions_invitee_created", "invitee_id", "created_at"),
        # At most one open session per invitee.
        Index(
            "uq_checkout_sessions_invitee_open",
            "invitee_id",
            unique=True,
            sqlite_where=text("status = 'created'"),
            postgresql_where=text("status = 'created'"),
        ),
    )

    invitee_id: Mapped[int] = mapped_column(
        ForeignKey("gift_invitees.id", ondelete="CASCADE"), nullable=False
    )
    stripe_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    status: Mapped[CheckoutSessionStatus] = mapped_column(
        SqlEnum(
            CheckoutSessionStatus,
            name="checkout_session_status",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=CheckoutSessionStatus.CREATED,
    )
    amount_total_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    invitee = relationship("Invitee", back_populates="checkout_sessions")
