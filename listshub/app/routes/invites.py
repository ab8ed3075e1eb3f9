"""API routes for family invites and invite-based signup."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..clock import current_time
from ..errors import DOMAIN_ERRORS, to_http_exception
from ..schemas.invites import (
    CreateInviteRequest,
    InviteListResponse,
    InviteOut,
    InvitePreviewOut,
    InviteSignupRequest,
    InviteSignupResponse,
    RedeemByCodeRequest,
)
from ..services.memberships import get_invite_service, get_invite_signup_service
from .families import _get_current_user

family_router = APIRouter(prefix="/api/families/{family_id}/invites", tags=["invites"])
router = APIRouter(prefix="/api/invites", tags=["invites"])


@family_router.post("", response_model=InviteOut, status_code=status.HTTP_201_CREATED)
def create_invite(
    family_id: str,
    payload: Optional[CreateInviteRequest] = None,
    *,
    current_user=Depends(_get_current_user),
) -> InviteOut:
    service = get_invite_service()
    expires_in_days = payload.expires_in_days if payload else None
    try:
        invite = service.create_invite(family_id, current_user.id, expires_in_days=expires_in_days)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return InviteOut.from_invite(invite, current_time(service.clock))


@family_router.get("", response_model=InviteListResponse)
def list_invites(family_id: str, *, current_user=Depends(_get_current_user)) -> InviteListResponse:
    service = get_invite_service()
    try:
        invites = service.list_family_invites(family_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    now = current_time(service.clock)
    return InviteListResponse(invites=[InviteOut.from_invite(invite, now) for invite in invites])


@family_router.delete("/{invite_id}", response_model=InviteOut)
def revoke_invite(
    family_id: str,
    invite_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> InviteOut:
    service = get_invite_service()
    try:
        invite = service.revoke_invite(family_id, invite_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return InviteOut.from_invite(invite, current_time(service.clock))


@family_router.post("/{invite_id}/accept", response_model=InvitePreviewOut)
def accept_invite(
    family_id: str,
    invite_id: str,
    *,
    current_user=Depends(_get_current_user),
) -> InvitePreviewOut:
    service = get_invite_service()
    try:
        invite = service.redeem_invite(family_id, invite_id, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return InvitePreviewOut.from_invite(invite, current_time(service.clock))


@router.get("/token/{token}", response_model=InvitePreviewOut)
def preview_invite_by_token(token: str) -> InvitePreviewOut:
    service = get_invite_service()
    try:
        invite = service.get_invite_by_token(token)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return InvitePreviewOut.from_invite(invite, current_time(service.clock))


@router.post("/token/{token}/accept", response_model=InvitePreviewOut)
def accept_invite_by_token(token: str, *, current_user=Depends(_get_current_user)) -> InvitePreviewOut:
    service = get_invite_service()
    try:
        invite = service.redeem_invite_by_token(token, current_user.id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return InvitePreviewOut.from_invite(invite, current_time(service.clock))


@router.get("/code/{code}", response_model=InvitePreviewOut)
def preview_invite_by_code(
    code: str,
    family_id: Optional[str] = Query(None, alias="familyId"),
) -> InvitePreviewOut:
    service = get_invite_service()
    try:
        invite = service.get_invite_by_code(code, family_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return InvitePreviewOut.from_invite(invite, current_time(service.clock))


@router.post("/redeem-code", response_model=InvitePreviewOut)
def redeem_invite_code(
    payload: RedeemByCodeRequest,
    *,
    current_user=Depends(_get_current_user),
) -> InvitePreviewOut:
    service = get_invite_service()
    try:
        invite = service.redeem_invite_by_code(
            payload.code, current_user.id, family_id=payload.family_id
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return InvitePreviewOut.from_invite(invite, current_time(service.clock))


@router.post("/signup", response_model=InviteSignupResponse, status_code=status.HTTP_201_CREATED)
def signup_with_invite(payload: InviteSignupRequest) -> InviteSignupResponse:
    service = get_invite_signup_service()
    try:
        result = service.create_invite_user(
            payload.email,
            payload.password,
            payload.display_name,
            payload.invite_token,
            locale=payload.locale,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return InviteSignupResponse(success=bool(result["success"]), uid=str(result["uid"]))


__all__ = ["family_router", "router"]
