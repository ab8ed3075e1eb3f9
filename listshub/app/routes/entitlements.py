"""API routes describing plans and what the signed-in user may do on theirs."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..accounts.models import UserAccount
from ..entitlements import PLAN_CATALOG
from ..feature_gates import EntitlementContext
from ..families.service import FamilyRepository, UserRepository
from ..schemas.families import EntitlementsOut, PermissionCheckOut, PlanListResponse, PlanOut
from ..services.memberships import get_membership_service
from .families import _get_current_user

router = APIRouter(prefix="/api/entitlements", tags=["entitlements"])


def _billing_holder(user: UserAccount, families: FamilyRepository, users: UserRepository) -> UserAccount:
    """Members are billed on the owner of their primary family."""

    if user.billing is not None or not user.primary_family_id:
        return user
    family = families.find_family(user.primary_family_id)
    if family is None:
        return user
    return users.find_user(family.owner_id) or user


@router.get("/plans", response_model=PlanListResponse)
def list_plans() -> PlanListResponse:
    return PlanListResponse(
        plans=[PlanOut.from_document(plan.to_document()) for plan in PLAN_CATALOG.values()]
    )


@router.get("/me", response_model=EntitlementsOut)
def read_entitlements(*, current_user=Depends(_get_current_user)) -> EntitlementsOut:
    service = get_membership_service()
    holder = _billing_holder(current_user, service.families, service.users)
    context = EntitlementContext(billing=holder.billing, role=current_user.role)
    owned = [
        family
        for family in service.families.list_families(current_user.active_family_ids)
        if family.owner_id == current_user.id
    ]
    return EntitlementsOut(
        plan_id=holder.billing.plan_id if holder.billing else None,
        limits=EntitlementsOut.limits_document(context.limits),
        checks={
            "createList": PermissionCheckOut.from_check(context.can_create_list()),
            "inviteMember": PermissionCheckOut.from_check(context.can_invite_member()),
            "createFamily": PermissionCheckOut.from_check(context.can_create_family(len(owned))),
        },
    )


__all__ = ["router"]
