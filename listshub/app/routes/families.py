"""API routes for families, their members and the signed-in user's family switch."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, status

from ... import app_context
from ...config import load_config
from ..errors import DOMAIN_ERRORS, to_http_exception
from ..schemas.families import (
    FamilyListResponse,
    FamilyMemberOut,
    FamilyNameRequest,
    FamilyOut,
    SwitchPrimaryFamilyRequest,
    UpdateAllowedListsRequest,
    UpdateMemberRoleRequest,
    UpgradeRequest,
    UpgradeResponse,
    UserOut,
)
from ..services.memberships import get_membership_service

_SESSION_COOKIE_NAME = load_config().session_cookie_name


def _get_current_user(
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
):
    return app_context.get_current_user(session_token=session_token)


router = APIRouter(prefix="/api/families", tags=["families"])


@router.get("", response_model=FamilyListResponse)
def list_families(*, current_user=Depends(_get_current_user)) -> FamilyListResponse:
    service = get_membership_service()
    try:
        families = service.list_user_families(current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return FamilyListResponse(families=[FamilyOut.from_family(family) for family in families])


@router.post("", response_model=FamilyOut, status_code=status.HTTP_201_CREATED)
def create_family(
    payload: FamilyNameRequest,
    *,
    current_user=Depends(_get_current_user),
) -> FamilyOut:
    if not current_user.is_titular:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only titular accounts may create families")
    service = get_membership_service()
    try:
        family = service.create_family(current_user.id, payload.name)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return FamilyOut.from_family(family)


@router.post("/primary", response_model=UserOut)
def switch_primary_family(
    payload: SwitchPrimaryFamilyRequest,
    *,
    current_user=Depends(_get_current_user),
) -> UserOut:
    service = get_membership_service()
    try:
        user = service.switch_primary_family(current_user.id, payload.family_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return UserOut.from_user(user)


@router.post("/upgrade", response_model=UpgradeResponse, status_code=status.HTTP_201_CREATED)
def upgrade_to_titular(
    payload: UpgradeRequest,
    *,
    current_user=Depends(_get_current_user),
) -> UpgradeResponse:
    service = get_membership_service()
    try:
        user, family = service.upgrade_to_titular(
            current_user.id, payload.plan_id, family_name=payload.family_name
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return UpgradeResponse(user=UserOut.from_user(user), family=FamilyOut.from_family(family))


@router.get("/{family_id}", response_model=FamilyOut)
def get_family(family_id: str, *, current_user=Depends(_get_current_user)) -> FamilyOut:
    service = get_membership_service()
    try:
        family = service.families.get_family(family_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    if not current_user.is_master and not family.is_active_member(current_user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is not an active member of this family")
    return FamilyOut.from_family(family)


@router.patch("/{family_id}", response_model=FamilyOut)
def rename_family(
    family_id: str,
    payload: FamilyNameRequest,
    *,
    current_user=Depends(_get_current_user),
) -> FamilyOut:
    service = get_membership_service()
    try:
        family = service.rename_family(family_id, payload.name, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return FamilyOut.from_family(family)


@router.delete("/{family_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(family_id: str, user_id: str, *, current_user=Depends(_get_current_user)) -> None:
    service = get_membership_service()
    try:
        service.remove_member(family_id, user_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{family_id}/members/{user_id}/role", response_model=FamilyMemberOut)
def update_member_role(
    family_id: str,
    user_id: str,
    payload: UpdateMemberRoleRequest,
    *,
    current_user=Depends(_get_current_user),
) -> FamilyMemberOut:
    service = get_membership_service()
    try:
        profile = service.update_member_role(family_id, user_id, payload.role, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return FamilyMemberOut.from_profile(profile)


@router.put("/{family_id}/members/{user_id}/lists", response_model=FamilyMemberOut)
def update_member_lists(
    family_id: str,
    user_id: str,
    payload: UpdateAllowedListsRequest,
    *,
    current_user=Depends(_get_current_user),
) -> FamilyMemberOut:
    service = get_membership_service()
    try:
        profile = service.update_member_allowed_lists(
            family_id, user_id, payload.allowed_lists, current_user.id
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return FamilyMemberOut.from_profile(profile)


__all__ = ["router"]
