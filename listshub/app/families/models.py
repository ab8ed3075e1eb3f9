"""Typed representations of families, their members and audit events."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

LEGACY_OWNER_ROLE = "titular"


class FamilyRole(str, Enum):
    """Role of a user inside one family."""

    OWNER = "owner"
    COLLABORATOR = "collaborator"
    VIEWER = "viewer"


class MemberStatus(str, Enum):
    ACTIVE = "active"
    REMOVED = "removed"
    PENDING = "pending"


class FamilyMemberProfile(BaseModel):
    """Entry in a family's ``members`` map. Removed entries are kept."""

    user_id: str
    role: FamilyRole = FamilyRole.VIEWER
    status: MemberStatus = MemberStatus.ACTIVE
    joined_at: datetime
    removed_at: Optional[datetime] = None
    allowed_lists: Optional[List[str]] = None
    display_name: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("role", mode="before")
    @classmethod
    def _normalise_legacy_role(cls, value: object) -> object:
        if value == LEGACY_OWNER_ROLE:
            return FamilyRole.OWNER
        return value

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    @property
    def is_owner(self) -> bool:
        return self.role == FamilyRole.OWNER

    def can_view_list(self, list_id: str) -> bool:
        """Owners see every list, everyone else only the lists granted to them."""

        if not self.is_active:
            return False
        if self.is_owner:
            return True
        return list_id in (self.allowed_lists or [])


class Family(BaseModel):
    """Persistent family record. Exactly one owner per family."""

    id: str
    name: str
    owner_id: str
    members: Dict[str, FamilyMemberProfile] = Field(default_factory=dict)
    blocked_members: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def _check_owner_profile(self) -> "Family":
        owner = self.members.get(self.owner_id)
        if owner is None or owner.role != FamilyRole.OWNER or owner.status != MemberStatus.ACTIVE:
            raise ValueError("Family owner must be an active member with the owner role")
        return self

    @property
    def active_members(self) -> List[FamilyMemberProfile]:
        return [profile for profile in self.members.values() if profile.is_active]

    def is_active_member(self, user_id: str) -> bool:
        profile = self.members.get(user_id)
        return profile is not None and profile.is_active

    def to_document(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: dict) -> "Family":
        return cls.model_validate(document)


def has_legacy_roles(document: dict) -> bool:
    members = document.get("members") or {}
    return any(
        (profile or {}).get("role") == LEGACY_OWNER_ROLE for profile in members.values()
    )


class FamilyAuditAction(str, Enum):
    """Actions that appear in membership related audit logs."""

    FAMILY_CREATED = "family_create"
    FAMILY_RENAMED = "family_rename"
    MEMBER_ADDED = "member_add"
    MEMBER_REMOVED = "member_remove"
    MEMBER_PROMOTED = "member_promote"
    ROLE_CHANGED = "role_change"
    LISTS_CHANGED = "allowed_lists_change"
    PRIMARY_SWITCHED = "primary_switch"
    INVITE_CREATED = "invite_create"
    INVITE_REDEEMED = "invite_redeem"
    INVITE_REVOKED = "invite_revoke"


class FamilyAuditEvent(BaseModel):
    """Structured payload captured in the audit log."""

    family_id: str
    actor_id: str
    subject_id: str
    action: FamilyAuditAction
    role_before: Optional[FamilyRole] = None
    role_after: Optional[FamilyRole] = None
    timestamp: datetime
    metadata: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


__all__ = [
    "Family",
    "FamilyAuditAction",
    "FamilyAuditEvent",
    "FamilyMemberProfile",
    "FamilyRole",
    "MemberStatus",
    "has_legacy_roles",
]
