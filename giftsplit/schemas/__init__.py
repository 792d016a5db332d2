"""Schema package exports."""
from .checkout import CheckoutLinkRead, CheckoutSessionStatusRead, LockAndSendRead
from .gift import (
    AmountTotals,
    GiftCreate,
    GiftCreated,
    GiftListItem,
    GiftRead,
    GiftSummary,
    InviteeRead,
    InviteesAdd,
    StatusCounts,
)
from .invitation import InvitationLinkCreate, InvitationLinkRead
from .join import JoinGift, JoinInviteeStatus, JoinPreview, JoinRespond

__all__ = [
    "AmountTotals",
    "CheckoutLinkRead",
    "CheckoutSessionStatusRead",
    "GiftCreate",
    "GiftCreated",
    "GiftListItem",
    "GiftRead",
    "GiftSummary",
    "InvitationLinkCreate",
    "InvitationLinkRead",
    "InviteeRead",
    "InviteesAdd",
    "JoinGift",
    "JoinInviteeStatus",
    "JoinPreview",
    "JoinRespond",
    "LockAndSendRead",
    "StatusCounts",
]
