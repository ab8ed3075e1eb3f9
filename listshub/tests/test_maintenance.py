from __future__ import annotations

from datetime import datetime, timezone

import pytest

from listshub.app.entitlements import PLAN_CATALOG, SeatAllocation, UserRole, is_unlimited
from listshub.app.errors import StateConflictError
from listshub.app.families.models import FamilyRole

from .fakes import make_member


def test_seed_plan_catalog_writes_every_plan(maintenance_service) -> None:
    seeded = maintenance_service.seed_plan_catalog()

    assert sorted(seeded) == sorted(PLAN_CATALOG)
    assert sorted(maintenance_service.plans.plans) == sorted(PLAN_CATALOG)


def test_promote_to_master_is_idempotent(maintenance_service, owner) -> None:
    user, _family = owner

    promoted = maintenance_service.promote_to_master("  OWNER@example.com ")
    again = maintenance_service.promote_to_master(user.email)

    assert promoted.role == UserRole.MASTER
    assert promoted.billing.plan_id == "master"
    assert is_unlimited(promoted.billing.seats.total)
    assert promoted.billing.seats.used == 1
    assert again == promoted


def test_promote_unknown_email(maintenance_service) -> None:
    with pytest.raises(LookupError):
        maintenance_service.promote_to_master("ghost@example.com")


def test_recalculate_seats_repairs_drift(maintenance_service, invite_service, users, owner) -> None:
    user, family = owner
    invite = invite_service.create_invite(family.id, user.id)
    make_member(users, "ana")
    invite_service.redeem_invite_by_token(invite.token, "ana")
    users._set_billing(users.get_user(user.id), seats=SeatAllocation(total=10, used=7))

    results = maintenance_service.recalculate_seats()

    assert [(r.user_id, r.changed) for r in results] == [(user.id, True)]
    seats = users.get_user(user.id).billing.seats
    assert (seats.total, seats.used) == (3, 2)
    assert not any(r.changed for r in maintenance_service.recalculate_seats())


def test_migrate_legacy_roles(maintenance_service, families, owner) -> None:
    user, family = owner
    document = family.to_document()
    document["members"][user.id]["role"] = "titular"
    families.raw_documents[family.id] = document

    migrated = maintenance_service.migrate_legacy_roles()

    assert migrated == [family.id]
    assert families.get_family(family.id).members[user.id].role == FamilyRole.OWNER
    assert families.raw_documents == {}
    assert maintenance_service.migrate_legacy_roles() == []


def test_change_plan_updates_seats_and_renewal(maintenance_service, users, owner) -> None:
    user, _family = owner

    updated = maintenance_service.change_plan(user.email, "plus")

    assert updated.billing.plan_id == "plus"
    assert (updated.billing.seats.total, updated.billing.seats.used) == (5, 1)
    assert updated.billing.renews_at == datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)
    assert users.get_user(user.id).billing.plan_id == "plus"


def test_change_plan_rejections(maintenance_service, users, owner) -> None:
    user, _family = owner
    make_member(users, "ana")

    with pytest.raises(ValueError, match="promote-master"):
        maintenance_service.change_plan(user.email, "master")
    with pytest.raises(KeyError):
        maintenance_service.change_plan(user.email, "gold")
    with pytest.raises(StateConflictError):
        maintenance_service.change_plan("ana@example.com", "plus")
