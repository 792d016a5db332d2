"""Stripe webhook idempotency ledger."""
from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class StripeEvent(Base):
    """Represents an incoming Stripe webhook event for idempotent processing."""

    __tablename__ = "stripe_events"
    __table_args__ = (
        UniqueConstraint("stripe_event_id", name="uq_stripe_events_stripe_event_id"),
        Index("ix_stripe_events_received", "received_at"),
        Index("ix_stripe_events_type", "event_type"),
    )

    stripe_event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    handled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
