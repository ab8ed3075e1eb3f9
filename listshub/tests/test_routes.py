from __future__ import annotations

import pytest
from fastapi import HTTPException

from listshub.app.routes import entitlements as entitlements_routes
from listshub.app.routes import families as families_routes
from listshub.app.routes import invites as invites_routes
from listshub.app.routes import lists as lists_routes
from listshub.app.schemas.families import FamilyNameRequest
from listshub.app.schemas.invites import InvitePreviewOut, InviteSignupRequest
from listshub.app.schemas.lists import CreateListRequest

from .fakes import make_member


@pytest.fixture(autouse=True)
def wired_services(monkeypatch, membership_service, invite_service, list_service, signup_service):
    monkeypatch.setattr(families_routes, "get_membership_service", lambda: membership_service)
    monkeypatch.setattr(entitlements_routes, "get_membership_service", lambda: membership_service)
    monkeypatch.setattr(invites_routes, "get_invite_service", lambda: invite_service)
    monkeypatch.setattr(invites_routes, "get_invite_signup_service", lambda: signup_service)
    monkeypatch.setattr(lists_routes, "get_list_service", lambda: list_service)


def test_create_invite_returns_remaining_uses(owner) -> None:
    user, family = owner

    response = invites_routes.create_invite(family.id, None, current_user=user)

    assert response.family_id == family.id
    assert response.max_uses == 2
    assert response.remaining_uses == 2
    assert response.model_dump(by_alias=True)["familyName"] == "My Family"


def test_non_owner_invite_is_forbidden(users, owner) -> None:
    _user, family = owner
    member = make_member(users, "ana")

    with pytest.raises(HTTPException) as exc:
        invites_routes.create_invite(family.id, None, current_user=member)

    assert exc.value.status_code == 403


def test_token_preview_hides_the_token(owner) -> None:
    user, family = owner
    created = invites_routes.create_invite(family.id, None, current_user=user)

    preview = invites_routes.preview_invite_by_token(created.token)

    assert isinstance(preview, InvitePreviewOut)
    assert "token" not in preview.model_dump()
    assert preview.remaining_uses == 2


def test_accepting_a_used_up_invite_conflicts(users, owner) -> None:
    user, family = owner
    created = invites_routes.create_invite(family.id, None, current_user=user)
    for member_id in ("ana", "bruno"):
        invites_routes.accept_invite_by_token(created.token, current_user=make_member(users, member_id))

    with pytest.raises(HTTPException) as exc:
        invites_routes.accept_invite_by_token(created.token, current_user=make_member(users, "carla"))

    assert exc.value.status_code == 409
    assert exc.value.detail == "Invite max uses reached"


def test_unknown_token_is_not_found() -> None:
    with pytest.raises(HTTPException) as exc:
        invites_routes.preview_invite_by_token("missing")

    assert exc.value.status_code == 404


def test_signup_with_invite(users, owner) -> None:
    user, family = owner
    created = invites_routes.create_invite(family.id, None, current_user=user)
    payload = InviteSignupRequest(
        email="ana@example.com",
        password="correct-horse",
        displayName="Ana",
        inviteToken=created.token,
    )

    response = invites_routes.signup_with_invite(payload)

    assert response.success is True
    assert users.get_user(response.uid).primary_family_id == family.id


def test_list_limit_surfaces_the_gate_payload(owner) -> None:
    user, family = owner
    for index in range(3):
        lists_routes.create_list(family.id, CreateListRequest(name=f"List {index}"), current_user=user)

    with pytest.raises(HTTPException) as exc:
        lists_routes.create_list(family.id, CreateListRequest(name="Extra"), current_user=user)

    assert exc.value.status_code == 403
    assert exc.value.detail["error"] == "list_limit_reached"
    assert exc.value.detail["current"] == 3


def test_members_cannot_create_families(users) -> None:
    member = make_member(users, "ana")

    with pytest.raises(HTTPException) as exc:
        families_routes.create_family(FamilyNameRequest(name="Mine"), current_user=member)

    assert exc.value.status_code == 403


def test_get_family_checks_membership(users, owner) -> None:
    user, family = owner
    outsider = make_member(users, "ana")

    assert families_routes.get_family(family.id, current_user=user).owner_id == user.id
    with pytest.raises(HTTPException) as forbidden:
        families_routes.get_family(family.id, current_user=outsider)
    with pytest.raises(HTTPException) as missing:
        families_routes.get_family("nope", current_user=user)

    assert forbidden.value.status_code == 403
    assert missing.value.status_code == 404


def test_list_families_for_the_current_user(owner) -> None:
    user, family = owner

    response = families_routes.list_families(current_user=user)

    assert [f.id for f in response.families] == [family.id]


def test_entitlements_for_owner(owner) -> None:
    user, _family = owner

    response = entitlements_routes.read_entitlements(current_user=user)

    assert response.plan_id == "free"
    assert response.limits["lists_per_family"] == 3
    assert response.checks["createList"].allowed is True
    assert response.checks["inviteMember"].allowed is True
    assert response.checks["createFamily"].allowed is False


def test_entitlements_for_member_use_the_owner_plan(invite_service, users, owner) -> None:
    user, family = owner
    invite = invite_service.create_invite(family.id, user.id)
    make_member(users, "ana")
    invite_service.redeem_invite_by_token(invite.token, "ana")

    response = entitlements_routes.read_entitlements(current_user=users.get_user("ana"))

    assert response.plan_id == "free"
    assert response.checks["createList"].allowed is False
    assert response.checks["createList"].reason == "Only titular accounts may create lists"


def test_plan_catalog_reports_unlimited_as_null() -> None:
    response = entitlements_routes.list_plans()

    plans = {plan.id: plan for plan in response.plans}
    assert set(plans) == {"free", "plus", "premium", "master"}
    assert all(value is None for value in plans["master"].limits.values())
    assert plans["plus"].monthly_price == 19.9
