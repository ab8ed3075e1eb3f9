from __future__ import annotations

from typing import Tuple

import pytest

from listshub.app.accounts.auth import AuthService
from listshub.app.accounts.models import Locale, UserAccount
from listshub.app.families.models import Family
from listshub.app.families.service import MembershipService
from listshub.app.invites.service import InviteService
from listshub.app.invites.signup import InviteSignupService
from listshub.app.lists.service import ListService
from listshub.app.maintenance.service import MaintenanceService

from .fakes import (
    InMemoryFamilyRepository,
    InMemoryIdentityStore,
    InMemoryInviteRepository,
    InMemoryListRepository,
    InMemoryPlanStore,
    InMemoryUserRepository,
    MutableClock,
    RecordingAuditLogger,
    RecordingResetNotifier,
)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def families() -> InMemoryFamilyRepository:
    return InMemoryFamilyRepository()


@pytest.fixture
def invites(users: InMemoryUserRepository, families: InMemoryFamilyRepository) -> InMemoryInviteRepository:
    return InMemoryInviteRepository(users, families)


@pytest.fixture
def lists() -> InMemoryListRepository:
    return InMemoryListRepository()


@pytest.fixture
def identities() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


@pytest.fixture
def audit_logger() -> RecordingAuditLogger:
    return RecordingAuditLogger()


@pytest.fixture
def membership_service(users, families, audit_logger, clock) -> MembershipService:
    counter = iter(range(1, 1000))
    return MembershipService(
        families=families,
        users=users,
        audit_logger=audit_logger,
        clock=clock,
        family_id_generator=lambda: f"family-{next(counter)}",
    )


@pytest.fixture
def invite_service(invites, families, users, audit_logger, clock) -> InviteService:
    counter = iter(range(1, 1000))
    return InviteService(
        invites=invites,
        families=families,
        users=users,
        audit_logger=audit_logger,
        clock=clock,
        id_generator=lambda: f"invite-{next(counter)}",
    )


@pytest.fixture
def list_service(lists, families, users, clock) -> ListService:
    counter = iter(range(1, 1000))
    return ListService(
        lists=lists,
        families=families,
        users=users,
        clock=clock,
        id_generator=lambda: f"id-{next(counter)}",
    )


@pytest.fixture
def reset_notifier() -> RecordingResetNotifier:
    return RecordingResetNotifier()


@pytest.fixture
def auth_service(identities, users, membership_service, reset_notifier, clock) -> AuthService:
    counter = iter(range(1, 1000))
    return AuthService(
        identities=identities,
        users=users,
        provisioner=membership_service,
        reset_notifier=reset_notifier,
        clock=clock,
        uid_generator=lambda: f"uid-{next(counter)}",
    )


@pytest.fixture
def signup_service(invite_service, identities, users, clock) -> InviteSignupService:
    counter = iter(range(1, 1000))
    return InviteSignupService(
        invites=invite_service,
        identities=identities,
        users=users,
        clock=clock,
        uid_generator=lambda: f"new-{next(counter)}",
    )


@pytest.fixture
def maintenance_service(users, families, clock) -> MaintenanceService:
    return MaintenanceService(users=users, families=families, plans=InMemoryPlanStore(), clock=clock)


@pytest.fixture
def owner(membership_service) -> Tuple[UserAccount, Family]:
    """A free-tier titular with seats {total: 3, used: 1}."""

    return membership_service.provision_titular("owner", "owner@example.com", "Owner", locale=Locale.EN)
