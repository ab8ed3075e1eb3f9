from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from listshub.app.accounts.auth import (
    InvalidCredentialsError,
    hash_token,
    normalize_email,
    verify_password,
)
from listshub.app.accounts.models import FamilyLink, UserAccount, close_family_links, revise_user
from listshub.app.accounts.session import bootstrap_session
from listshub.app.accounts.tokens import create_access_token, decode_access_token
from listshub.app.entitlements import AccountStatus, UserRole
from listshub.app.errors import StateConflictError
from listshub.app.schemas.accounts import SignUpRequest

from .fakes import FIXED_NOW, make_member


def _member(**overrides) -> UserAccount:
    document = {
        "id": "ana",
        "email": "ana@example.com",
        "created_at": FIXED_NOW,
        "updated_at": FIXED_NOW,
    }
    document.update(overrides)
    return UserAccount(**document)


def test_active_families_adds_a_synthetic_primary_link() -> None:
    user = _member(
        primary_family_id="fam-primary",
        families=[
            FamilyLink(family_id="fam-a", joined_at=FIXED_NOW),
            FamilyLink(family_id="fam-a", joined_at=FIXED_NOW),
            FamilyLink(family_id="fam-old", joined_at=FIXED_NOW, removed_at=FIXED_NOW),
        ],
    )

    assert user.active_family_ids == ["fam-a", "fam-primary"]
    assert user.belongs_to_family("fam-primary")
    assert not user.belongs_to_family("fam-old")


def test_member_documents_cannot_carry_billing(owner) -> None:
    titular, _family = owner

    assert titular.is_titular
    assert not titular.is_family_member_only
    assert _member().is_family_member_only

    with pytest.raises(ValueError):
        revise_user(titular, role=UserRole.MEMBER)


def test_close_family_links_keeps_history() -> None:
    links = [
        FamilyLink(family_id="fam-a", joined_at=FIXED_NOW),
        FamilyLink(family_id="fam-b", joined_at=FIXED_NOW),
    ]
    later = FIXED_NOW + timedelta(days=1)

    closed = close_family_links(links, "fam-a", later)

    assert [link.family_id for link in closed] == ["fam-a", "fam-b"]
    assert closed[0].removed_at == later
    assert closed[1].removed_at is None


def test_can_manage_family_checks(owner, users) -> None:
    titular, family = owner
    member = make_member(users, "ana")

    assert titular.can_manage_family(family.id)
    assert titular.can_manage_family_from_record(family)
    assert not titular.can_manage_family("elsewhere")
    assert not member.can_manage_family(family.id)
    assert not member.can_manage_family_from_record(family)

    suspended, _ = revise_user(titular, status=AccountStatus.SUSPENDED)
    assert not suspended.can_manage_family(family.id)
    assert not suspended.can_manage_family_from_record(family)

    master, _ = revise_user(member, role=UserRole.MASTER)
    assert master.can_manage_family("anything")
    assert master.can_manage_family_from_record(family)
    assert master.managed_family_id is None


def test_access_tokens_round_trip() -> None:
    token = create_access_token(subject="uid-1", secret_key="secret", expires_delta=timedelta(minutes=5))

    assert decode_access_token(token, secret_key="secret") == "uid-1"
    assert decode_access_token(token, secret_key="other") is None
    assert decode_access_token("not-a-token", secret_key="secret") is None


def test_expired_access_token_is_rejected() -> None:
    issued = datetime(2020, 1, 1, tzinfo=timezone.utc)
    token = create_access_token(
        subject="uid-1", secret_key="secret", expires_delta=timedelta(minutes=5), now=issued
    )

    assert decode_access_token(token, secret_key="secret") is None


def test_bootstrap_session_reports_diagnostics(users) -> None:
    make_member(users, "ana")
    seen = []

    user = bootstrap_session(users, "ana", diagnostics=seen.append)

    assert user.id == "ana"
    assert seen == [user]
    assert bootstrap_session(users, "ghost", diagnostics=seen.append) is None
    assert len(seen) == 1


def test_sign_up_provisions_a_titular(auth_service, identities, families) -> None:
    user = auth_service.sign_up(" Owner@Example.com ", "correct-horse", "Owner", family_name="Casa")

    assert user.id == "uid-1"
    assert user.email == "owner@example.com"
    assert user.role == UserRole.TITULAR
    assert families.get_family(user.primary_family_id).name == "Casa"
    assert verify_password("correct-horse", identities.find_identity("uid-1").password_hash)


def test_sign_up_rejects_duplicate_email(auth_service) -> None:
    auth_service.sign_up("owner@example.com", "correct-horse", "Owner")

    with pytest.raises(StateConflictError):
        auth_service.sign_up("OWNER@example.com", "another-pass", "Owner Again")


def test_sign_in_stamps_last_sign_in(auth_service, clock) -> None:
    auth_service.sign_up("owner@example.com", "correct-horse", "Owner")
    clock.now = clock.now + timedelta(hours=1)

    user = auth_service.sign_in("owner@example.com", "correct-horse")

    assert user.last_sign_in_at == clock.now


@pytest.mark.parametrize(
    "email, password",
    [
        ("owner@example.com", "wrong-password"),
        ("nobody@example.com", "correct-horse"),
        ("not-an-email", "correct-horse"),
    ],
)
def test_sign_in_failures_are_uniform(auth_service, email, password) -> None:
    auth_service.sign_up("owner@example.com", "correct-horse", "Owner")

    with pytest.raises(InvalidCredentialsError, match="Invalid email or password"):
        auth_service.sign_in(email, password)


def test_password_reset_flow(auth_service, identities, reset_notifier, clock) -> None:
    auth_service.sign_up("owner@example.com", "correct-horse", "Owner")

    expires_at = auth_service.request_password_reset("owner@example.com")

    assert expires_at == clock.now + timedelta(minutes=60)
    email, token, _ = reset_notifier.sent[0]
    assert email == "owner@example.com"
    assert hash_token(token) in identities.reset_tokens

    auth_service.reset_password(token, "brand-new-pass")

    assert verify_password("brand-new-pass", identities.find_identity("uid-1").password_hash)
    with pytest.raises(ValueError, match="Invalid or expired"):
        auth_service.reset_password(token, "another-pass")


def test_password_reset_for_unknown_email_is_silent(auth_service, reset_notifier) -> None:
    assert auth_service.request_password_reset("nobody@example.com") is None
    assert auth_service.request_password_reset("garbage") is None
    assert reset_notifier.sent == []


def test_expired_reset_token_is_rejected(auth_service, reset_notifier, clock) -> None:
    auth_service.sign_up("owner@example.com", "correct-horse", "Owner")
    auth_service.request_password_reset("owner@example.com")
    _, token, _ = reset_notifier.sent[0]
    clock.now = clock.now + timedelta(hours=2)

    with pytest.raises(ValueError):
        auth_service.reset_password(token, "brand-new-pass")


def test_normalize_email_lowercases_valid_addresses() -> None:
    assert normalize_email("  Ana@Example.com ") == "ana@example.com"


@pytest.mark.parametrize(
    "email",
    ["a..b@example.com", "user@exa_mple.com", "x@-bad-.com", "not-an-email", ""],
)
def test_normalize_email_rejects_malformed_addresses(email) -> None:
    with pytest.raises(ValueError, match="valid email address"):
        normalize_email(email)


def test_sign_up_request_validates_the_email() -> None:
    with pytest.raises(ValidationError):
        SignUpRequest(email="a..b@example.com", password="correct-horse", displayName="Ana")

    request = SignUpRequest(email="ana@example.com", password="correct-horse", displayName="Ana")
    assert request.email == "ana@example.com"
