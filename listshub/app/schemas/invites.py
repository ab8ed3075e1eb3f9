"""API schemas for invite endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..accounts.models import Locale
from ..invites.models import FamilyInvite, InviteStatus


class CreateInviteRequest(BaseModel):
    expires_in_days: Optional[int] = Field(alias="expiresInDays", default=None, ge=1, le=30)

    model_config = ConfigDict(populate_by_name=True)


class InviteOut(BaseModel):
    id: str
    family_id: str = Field(alias="familyId")
    family_name: str = Field(alias="familyName")
    code: str
    token: str
    status: InviteStatus
    max_uses: int = Field(alias="maxUses")
    used_count: int = Field(alias="usedCount")
    remaining_uses: int = Field(alias="remainingUses")
    accepted_by: List[str] = Field(alias="acceptedBy", default_factory=list)
    created_at: datetime = Field(alias="createdAt")
    expires_at: datetime = Field(alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_invite(cls, invite: FamilyInvite, now: datetime) -> "InviteOut":
        return cls(
            id=invite.id,
            family_id=invite.family_id,
            family_name=invite.family_name,
            code=invite.code,
            token=invite.token,
            status=invite.effective_status(now),
            max_uses=invite.max_uses,
            used_count=invite.used_count,
            remaining_uses=invite.remaining_uses,
            accepted_by=list(invite.accepted_by),
            created_at=invite.created_at,
            expires_at=invite.expires_at,
        )


class InviteListResponse(BaseModel):
    invites: List[InviteOut]


class InvitePreviewOut(BaseModel):
    """What an invitee sees before accepting. Omits the token and the member list."""

    family_id: str = Field(alias="familyId")
    family_name: str = Field(alias="familyName")
    status: InviteStatus
    remaining_uses: int = Field(alias="remainingUses")
    expires_at: datetime = Field(alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_invite(cls, invite: FamilyInvite, now: datetime) -> "InvitePreviewOut":
        return cls(
            family_id=invite.family_id,
            family_name=invite.family_name,
            status=invite.effective_status(now),
            remaining_uses=invite.remaining_uses,
            expires_at=invite.expires_at,
        )


class RedeemByCodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=16)
    family_id: Optional[str] = Field(alias="familyId", default=None)

    model_config = ConfigDict(populate_by_name=True)


class InviteSignupRequest(BaseModel):
    email: EmailStr
    password: str
    display_name: str = Field(alias="displayName")
    invite_token: str = Field(alias="inviteToken")
    locale: Locale = Locale.PT

    model_config = ConfigDict(populate_by_name=True)


class InviteSignupResponse(BaseModel):
    success: bool
    uid: str
