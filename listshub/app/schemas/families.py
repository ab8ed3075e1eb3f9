"""API schemas for users, families and entitlements."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..accounts.models import Locale, UserAccount
from ..entitlements import AccountStatus, BillingSnapshot, PermissionCheck, PlanLimits, UserRole, is_unlimited
from ..families.models import Family, FamilyMemberProfile, FamilyRole, MemberStatus


def _finite(value) -> Optional[int]:
    return None if is_unlimited(value) else int(value)


class SeatsOut(BaseModel):
    total: Optional[int] = Field(description="Null when unlimited.")
    used: int

    model_config = ConfigDict(populate_by_name=True)


class BillingOut(BaseModel):
    plan_id: str = Field(alias="planId")
    status: AccountStatus
    renews_at: Optional[datetime] = Field(alias="renewsAt", default=None)
    seats: SeatsOut
    invites: SeatsOut
    lists_created: int = Field(alias="listsCreated")
    items_tracked: int = Field(alias="itemsTracked")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_snapshot(cls, billing: BillingSnapshot) -> "BillingOut":
        return cls(
            plan_id=billing.plan_id,
            status=billing.status,
            renews_at=billing.renews_at,
            seats=SeatsOut(total=_finite(billing.seats.total), used=billing.seats.used),
            invites=SeatsOut(total=_finite(billing.invites.total), used=billing.invites.used),
            lists_created=billing.lists_created,
            items_tracked=billing.items_tracked,
        )


class UserOut(BaseModel):
    id: str
    email: str
    display_name: str = Field(alias="displayName")
    locale: Locale
    role: UserRole
    status: AccountStatus
    primary_family_id: Optional[str] = Field(alias="primaryFamilyId", default=None)
    active_family_ids: List[str] = Field(alias="activeFamilyIds", default_factory=list)
    billing: Optional[BillingOut] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_user(cls, user: UserAccount) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            locale=user.locale,
            role=user.role,
            status=user.status,
            primary_family_id=user.primary_family_id,
            active_family_ids=user.active_family_ids,
            billing=BillingOut.from_snapshot(user.billing) if user.billing else None,
        )


class FamilyMemberOut(BaseModel):
    user_id: str = Field(alias="userId")
    role: FamilyRole
    status: MemberStatus
    joined_at: datetime = Field(alias="joinedAt")
    removed_at: Optional[datetime] = Field(alias="removedAt", default=None)
    allowed_lists: Optional[List[str]] = Field(alias="allowedLists", default=None)
    display_name: Optional[str] = Field(alias="displayName", default=None)
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_profile(cls, profile: FamilyMemberProfile) -> "FamilyMemberOut":
        return cls(**profile.model_dump())


class FamilyOut(BaseModel):
    id: str
    name: str
    owner_id: str = Field(alias="ownerId")
    members: List[FamilyMemberOut]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_family(cls, family: Family) -> "FamilyOut":
        return cls(
            id=family.id,
            name=family.name,
            owner_id=family.owner_id,
            members=[FamilyMemberOut.from_profile(profile) for profile in family.members.values()],
            created_at=family.created_at,
            updated_at=family.updated_at,
        )


class FamilyListResponse(BaseModel):
    families: List[FamilyOut]


class FamilyNameRequest(BaseModel):
    name: str = Field(min_length=1, max_length=80)


class AddMemberRequest(BaseModel):
    user_id: str = Field(alias="userId")
    role: FamilyRole = FamilyRole.VIEWER

    model_config = ConfigDict(populate_by_name=True)


class UpdateMemberRoleRequest(BaseModel):
    role: FamilyRole


class UpdateAllowedListsRequest(BaseModel):
    allowed_lists: List[str] = Field(alias="allowedLists", default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class SwitchPrimaryFamilyRequest(BaseModel):
    family_id: str = Field(alias="familyId")

    model_config = ConfigDict(populate_by_name=True)


class UpgradeRequest(BaseModel):
    plan_id: str = Field(alias="planId", default="free")
    family_name: Optional[str] = Field(alias="familyName", default=None)

    model_config = ConfigDict(populate_by_name=True)


class PermissionCheckOut(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    limit: Optional[int] = None
    current: Optional[int] = None

    @classmethod
    def from_check(cls, check: PermissionCheck) -> "PermissionCheckOut":
        limit = None if check.limit is None else _finite(check.limit)
        return cls(allowed=check.allowed, reason=check.reason, limit=limit, current=check.current)


class EntitlementsOut(BaseModel):
    plan_id: Optional[str] = Field(alias="planId", default=None)
    limits: Dict[str, Optional[int]] = Field(default_factory=dict)
    checks: Dict[str, PermissionCheckOut] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @staticmethod
    def limits_document(limits: Optional[PlanLimits]) -> Dict[str, Optional[int]]:
        if limits is None:
            return {}
        return {key: _finite(value) for key, value in vars(limits).items()}


class UpgradeResponse(BaseModel):
    user: UserOut
    family: FamilyOut


class PlanOut(BaseModel):
    id: str
    tier: str
    display_name: str = Field(alias="displayName")
    translation_key: str = Field(alias="translationKey")
    limits: Dict[str, Optional[int]]
    monthly_price: float = Field(alias="monthlyPrice")
    yearly_price: float = Field(alias="yearlyPrice")
    currency: str
    perks: List[str]

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_document(cls, document: Dict[str, object]) -> "PlanOut":
        return cls(**document)


class PlanListResponse(BaseModel):
    plans: List[PlanOut]
