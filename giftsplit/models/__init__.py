"""ORM models package."""
from .audit import AuditLog
from .base import Base
from .checkout_session import CheckoutSession, CheckoutSessionStatus
from .gift import EXCLUDED_FROM_SPLIT, Gift, Invitee, InviteeStatus
from .invitation import InvitationLink
from .stripe_event import StripeEvent

__all__ = [
    "AuditLog",
    "Base",
    "CheckoutSession",
    "CheckoutSessionStatus",
    "EXCLUDED_FROM_SPLIT",
    "Gift",
    "InvitationLink",
    "Invitee",
    "InviteeStatus",
    "StripeEvent",
]
