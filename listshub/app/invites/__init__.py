"""Invite domain package: multi-use family invites and their redemption."""

from .models import FamilyInvite, InviteRedemption, InviteStatus, InviteType, RedemptionOutcome
from .service import InviteRepository, InviteService

__all__ = [
    "FamilyInvite",
    "InviteRedemption",
    "InviteRepository",
    "InviteService",
    "InviteStatus",
    "InviteType",
    "RedemptionOutcome",
]
