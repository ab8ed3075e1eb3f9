from __future__ import annotations

import pytest

from listshub.app.accounts.models import Locale
from listshub.app.entitlements import UserRole
from listshub.app.errors import StateConflictError
from listshub.app.families.models import FamilyAuditAction, FamilyRole, MemberStatus
from listshub.app.feature_gates import FeatureGateError

from .fakes import make_member


def _join(invite_service, owner_user, family, member_id: str) -> None:
    invite = invite_service.create_invite(family.id, owner_user.id)
    invite_service.redeem_invite_by_token(invite.token, member_id)


def test_provision_titular_creates_family_first(owner, families, users) -> None:
    user, family = owner

    assert user.role == UserRole.TITULAR
    assert user.primary_family_id == family.id
    assert family.name == "My Family"
    assert family.members[user.id].role == FamilyRole.OWNER
    assert (user.billing.seats.total, user.billing.seats.used) == (3, 1)
    assert families.get_family(family.id) == family
    assert users.get_user(user.id) == user


def test_portuguese_accounts_get_a_portuguese_family_name(membership_service) -> None:
    _user, family = membership_service.provision_titular("pt", "pt@example.com", "Pedro", locale=Locale.PT)

    assert family.name == "Minha Família"


def test_removed_member_without_other_families_becomes_titular(
    membership_service, invite_service, users, owner
) -> None:
    user, family = owner
    make_member(users, "ana")
    _join(invite_service, user, family, "ana")

    updated = membership_service.remove_member(family.id, "ana", user.id)

    assert updated.role == UserRole.TITULAR
    assert updated.primary_family_id not in (None, family.id)
    assert (updated.billing.seats.total, updated.billing.seats.used) == (3, 1)
    assert updated.active_family_ids == [updated.primary_family_id]
    removed_link = [link for link in updated.families if link.family_id == family.id][0]
    assert removed_link.removed_at is not None


def test_removed_member_keeps_remaining_family(membership_service, invite_service, users, owner) -> None:
    user, family = owner
    other_owner, other_family = membership_service.provision_titular("other", "other@example.com", "Other")
    make_member(users, "ana")
    _join(invite_service, user, family, "ana")
    _join(invite_service, other_owner, other_family, "ana")

    updated = membership_service.remove_member(family.id, "ana", user.id)

    assert updated.role == UserRole.MEMBER
    assert updated.billing is None
    assert updated.primary_family_id == other_family.id
    assert updated.active_family_ids == [other_family.id]


def test_removal_keeps_a_primary_that_is_still_active(membership_service, owner) -> None:
    user, family = owner
    other_owner, other_family = membership_service.provision_titular("other", "other@example.com", "Other")
    membership_service.add_member(family.id, other_owner.id, actor_id=user.id)

    updated = membership_service.remove_member(family.id, other_owner.id, user.id)

    assert updated.role == UserRole.TITULAR
    assert updated.primary_family_id == other_family.id
    assert updated.active_family_ids == [other_family.id]


def test_removal_always_leaves_an_active_family(membership_service, invite_service, users, owner) -> None:
    user, family = owner
    for member_id in ("ana", "bruno"):
        make_member(users, member_id)
        _join(invite_service, user, family, member_id)

    for member_id in ("ana", "bruno"):
        updated = membership_service.remove_member(family.id, member_id, user.id)
        assert updated.active_family_ids


def test_removal_releases_the_seat_and_keeps_the_profile(
    membership_service, invite_service, users, families, audit_logger, owner
) -> None:
    user, family = owner
    make_member(users, "ana")
    _join(invite_service, user, family, "ana")
    assert users.get_user(user.id).billing.seats.used == 2

    membership_service.remove_member(family.id, "ana", user.id)

    profile = families.get_family(family.id).members["ana"]
    assert profile.status == MemberStatus.REMOVED
    assert profile.removed_at is not None
    assert users.get_user(user.id).billing.seats.used == 1
    assert FamilyAuditAction.MEMBER_REMOVED in [event.action for event in audit_logger.events]


def test_only_owner_may_remove_members(membership_service, invite_service, users, owner) -> None:
    user, family = owner
    for member_id in ("ana", "bruno"):
        make_member(users, member_id)
        _join(invite_service, user, family, member_id)

    with pytest.raises(PermissionError, match="Only the family owner"):
        membership_service.remove_member(family.id, "bruno", "ana")


def test_owner_cannot_be_removed(membership_service, owner) -> None:
    user, family = owner

    with pytest.raises(ValueError, match="cannot be removed"):
        membership_service.remove_member(family.id, user.id, user.id)


def test_removing_a_non_member_is_a_lookup_error(membership_service, users, owner) -> None:
    user, family = owner
    make_member(users, "ana")

    with pytest.raises(LookupError):
        membership_service.remove_member(family.id, "ana", user.id)


def test_add_member_twice_yields_one_active_entry(membership_service, users, families, owner) -> None:
    user, family = owner
    make_member(users, "ana")

    membership_service.add_member(family.id, "ana", actor_id=user.id)
    membership_service.add_member(family.id, "ana", FamilyRole.COLLABORATOR, actor_id=user.id)

    stored = families.get_family(family.id)
    active = [profile for profile in stored.active_members if profile.user_id == "ana"]
    assert len(active) == 1
    assert active[0].role == FamilyRole.COLLABORATOR
    member = users.get_user("ana")
    assert [link.family_id for link in member.families] == [family.id]


def test_direct_add_and_remove_keep_seats_balanced(
    membership_service, invite_service, users, owner
) -> None:
    user, family = owner
    make_member(users, "ana")

    membership_service.add_member(family.id, "ana", actor_id=user.id)
    membership_service.add_member(family.id, "ana", FamilyRole.COLLABORATOR, actor_id=user.id)
    assert users.get_user(user.id).billing.seats.used == 2

    membership_service.remove_member(family.id, "ana", user.id)

    assert users.get_user(user.id).billing.seats.used == 1
    assert invite_service.create_invite(family.id, user.id).max_uses == 2


def test_add_member_rejects_owner_role(membership_service, users, owner) -> None:
    _user, family = owner
    make_member(users, "ana")

    with pytest.raises(ValueError):
        membership_service.add_member(family.id, "ana", FamilyRole.OWNER)


def test_update_member_role_and_lists(membership_service, invite_service, users, families, owner) -> None:
    user, family = owner
    make_member(users, "ana")
    _join(invite_service, user, family, "ana")

    profile = membership_service.update_member_role(family.id, "ana", FamilyRole.COLLABORATOR, user.id)
    assert profile.role == FamilyRole.COLLABORATOR

    profile = membership_service.update_member_allowed_lists(
        family.id, "ana", ["list-1", "list-1", "", "list-2"], user.id
    )
    assert profile.allowed_lists == ["list-1", "list-2"]
    assert families.get_family(family.id).members["ana"].allowed_lists == ["list-1", "list-2"]

    with pytest.raises(ValueError):
        membership_service.update_member_role(family.id, user.id, FamilyRole.VIEWER, user.id)
    with pytest.raises(PermissionError):
        membership_service.update_member_role(family.id, "ana", FamilyRole.VIEWER, "ana")


def test_rename_family_validates_name(membership_service, families, owner) -> None:
    user, family = owner

    renamed = membership_service.rename_family(family.id, "  Casa  ", user.id)

    assert renamed.name == "Casa"
    assert families.get_family(family.id).name == "Casa"
    with pytest.raises(ValueError):
        membership_service.rename_family(family.id, "   ", user.id)
    with pytest.raises(ValueError):
        membership_service.rename_family(family.id, "x" * 81, user.id)


def test_create_family_is_gated_by_plan(membership_service, owner) -> None:
    user, _family = owner

    with pytest.raises(FeatureGateError) as exc:
        membership_service.create_family(user.id, "Second")

    assert exc.value.code == "family_limit_reached"


def test_master_can_create_many_families(membership_service, maintenance_service, users, owner) -> None:
    user, family = owner
    maintenance_service.promote_to_master(user.email)

    second = membership_service.create_family(user.id, "Second")
    third = membership_service.create_family(user.id, "Third")

    master = users.get_user(user.id)
    assert master.primary_family_id == family.id
    assert set(master.active_family_ids) == {family.id, second.id, third.id}


def test_list_user_families_only_returns_active_memberships(
    membership_service, invite_service, users, owner
) -> None:
    user, family = owner
    make_member(users, "ana")
    _join(invite_service, user, family, "ana")

    assert [f.id for f in membership_service.list_user_families("ana")] == [family.id]


def test_member_switches_primary_family(membership_service, invite_service, users, owner) -> None:
    user, family = owner
    other_owner, other_family = membership_service.provision_titular("other", "other@example.com", "Other")
    make_member(users, "ana")
    _join(invite_service, user, family, "ana")
    _join(invite_service, other_owner, other_family, "ana")

    updated = membership_service.switch_primary_family("ana", other_family.id)

    assert updated.primary_family_id == other_family.id


def test_titular_cannot_switch_to_a_family_they_do_not_own(
    membership_service, invite_service, owner
) -> None:
    user, family = owner
    other_owner, other_family = membership_service.provision_titular("other", "other@example.com", "Other")
    _join(invite_service, other_owner, other_family, user.id)

    with pytest.raises(PermissionError, match="only switch to a family they own"):
        membership_service.switch_primary_family(user.id, other_family.id)


def test_switch_to_foreign_family_is_rejected(membership_service, users, owner) -> None:
    _user, family = owner
    make_member(users, "ana")

    with pytest.raises(PermissionError):
        membership_service.switch_primary_family("ana", family.id)


def test_member_upgrades_to_titular(membership_service, invite_service, users, owner) -> None:
    user, family = owner
    make_member(users, "ana")
    _join(invite_service, user, family, "ana")

    updated, new_family = membership_service.upgrade_to_titular("ana", "plus", family_name="Ana's")

    assert updated.role == UserRole.TITULAR
    assert updated.billing.plan_id == "plus"
    assert updated.billing.seats.used == 1
    assert updated.primary_family_id == new_family.id
    assert set(updated.active_family_ids) == {family.id, new_family.id}
    assert new_family.owner_id == "ana"


def test_upgrade_rejects_titulars_and_master_plan(membership_service, users, owner) -> None:
    user, _family = owner
    make_member(users, "ana")

    with pytest.raises(StateConflictError):
        membership_service.upgrade_to_titular(user.id)
    with pytest.raises(PermissionError):
        membership_service.upgrade_to_titular("ana", "master")
    with pytest.raises(KeyError):
        membership_service.upgrade_to_titular("ana", "gold")
