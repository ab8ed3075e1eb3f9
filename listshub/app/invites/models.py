"""Invite records and the redemption write they produce."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..accounts.models import FamilyLink
from ..families.models import FamilyMemberProfile, FamilyRole, MemberStatus


class InviteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class InviteType(str, Enum):
    LINK = "link"


class FamilyInvite(BaseModel):
    """A multi-use invitation bounded by ``max_uses``.

    ``expired`` is never stored by the service; expiry is derived on read by
    :meth:`effective_status`.
    """

    id: str
    family_id: str
    family_name: str = ""
    created_by: str
    created_at: datetime
    expires_at: datetime
    invite_type: InviteType = InviteType.LINK
    token: str
    code: str
    status: InviteStatus = InviteStatus.PENDING
    max_uses: int = Field(ge=0)
    used_count: int = Field(default=0, ge=0)
    accepted_by: List[str] = Field(default_factory=list)
    revoked_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def _check_usage(self) -> "FamilyInvite":
        if self.used_count > self.max_uses:
            raise ValueError("used_count cannot exceed max_uses")
        if self.status == InviteStatus.ACCEPTED and self.used_count != self.max_uses:
            raise ValueError("Accepted invites must have used every seat")
        if self.status == InviteStatus.PENDING and self.used_count >= self.max_uses:
            raise ValueError("Pending invites must have uses remaining")
        return self

    @property
    def remaining_uses(self) -> int:
        return self.max_uses - self.used_count

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def effective_status(self, now: datetime) -> InviteStatus:
        if self.status == InviteStatus.PENDING and self.is_expired(now):
            return InviteStatus.EXPIRED
        return self.status

    def to_document(self) -> dict:
        return self.model_dump(mode="json")


class InviteRedemption(BaseModel):
    """Everything one redemption writes, derived from the invite as it was read.

    Repositories apply it atomically, conditioned on the stored ``used_count``
    still matching :attr:`expected_used_count`.
    """

    invite: FamilyInvite
    user_id: str
    owner_id: str
    redeemed_at: datetime
    display_name: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def expected_used_count(self) -> int:
        return self.invite.used_count

    @property
    def next_used_count(self) -> int:
        return self.invite.used_count + 1

    @property
    def next_status(self) -> InviteStatus:
        if self.next_used_count >= self.invite.max_uses:
            return InviteStatus.ACCEPTED
        return InviteStatus.PENDING

    def member_profile(self) -> FamilyMemberProfile:
        return FamilyMemberProfile(
            user_id=self.user_id,
            role=FamilyRole.VIEWER,
            status=MemberStatus.ACTIVE,
            joined_at=self.redeemed_at,
            allowed_lists=[],
            display_name=self.display_name,
            email=self.email,
        )

    def family_link(self) -> FamilyLink:
        return FamilyLink(
            family_id=self.invite.family_id,
            joined_at=self.redeemed_at,
            invited_by=self.invite.created_by,
        )


class RedemptionOutcome(str, Enum):
    APPLIED = "applied"
    INVITE_CHANGED = "invite_changed"
    SEATS_EXHAUSTED = "seats_exhausted"


__all__ = [
    "FamilyInvite",
    "InviteRedemption",
    "InviteStatus",
    "InviteType",
    "RedemptionOutcome",
]
