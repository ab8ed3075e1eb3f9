"""Idempotent operator tasks run from ``listshub.manage``."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from dateutil.relativedelta import relativedelta

from ..accounts.models import UserAccount, revise_user
from ..clock import Clock, current_time
from ..entitlements import (
    PLAN_CATALOG,
    AccountStatus,
    PlanDefinition,
    PlanTier,
    SeatAllocation,
    UserRole,
    create_initial_billing_snapshot,
    find_plan_definition,
    get_plan_definition,
)
from ..errors import StateConflictError
from ..families.models import Family, has_legacy_roles
from ..families.service import FamilyRepository, UserRepository

logger = logging.getLogger("maintenance")


class PlanStore(Protocol):
    def upsert_plan(self, plan: PlanDefinition) -> PlanDefinition:
        ...


class FamilyDocumentStore(FamilyRepository, Protocol):
    def list_family_documents(self) -> List[dict]:
        ...

    def save_family(self, family: Family) -> Family:
        ...


@dataclass(frozen=True)
class SeatReconciliation:
    user_id: str
    total_before: object
    used_before: int
    total_after: object
    used_after: int

    @property
    def changed(self) -> bool:
        return (self.total_before, self.used_before) != (self.total_after, self.used_after)


@dataclass
class MaintenanceService:
    users: UserRepository
    families: FamilyDocumentStore
    plans: PlanStore
    clock: Optional[Clock] = None

    def seed_plan_catalog(self) -> List[str]:
        seeded = [self.plans.upsert_plan(plan).id for plan in PLAN_CATALOG.values()]
        logger.info("Seeded %d plans: %s", len(seeded), ", ".join(seeded))
        return seeded

    def promote_to_master(self, email: str) -> UserAccount:
        user = self._require_user_by_email(email)
        if user.is_master and user.billing is not None and user.billing.plan_id == PlanTier.MASTER.value:
            logger.info("%s is already a master account", email)
            return user

        now = current_time(self.clock)
        seats_used = user.billing.seats.used if user.billing is not None else 1
        billing = create_initial_billing_snapshot(PlanTier.MASTER.value, seats_used=seats_used, now=now)
        updated = self.users.update_user(
            *revise_user(user, role=UserRole.MASTER, billing=billing, updated_at=now)
        )
        logger.info("Promoted %s to master", email)
        return updated

    def recalculate_seats(self) -> List[SeatReconciliation]:
        """Reset each titular's seat total from its plan and count used seats from its family."""

        results: List[SeatReconciliation] = []
        now = current_time(self.clock)
        for user in self.users.list_users():
            if user.role != UserRole.TITULAR or user.billing is None:
                continue
            plan = find_plan_definition(user.billing.plan_id)
            if plan is None:
                logger.warning("Skipping %s: unknown plan %s", user.id, user.billing.plan_id)
                continue
            total = plan.effective_limits(user.billing.limits).family_members
            used = self._count_seats(user)
            result = SeatReconciliation(
                user_id=user.id,
                total_before=user.billing.seats.total,
                used_before=user.billing.seats.used,
                total_after=total,
                used_after=used,
            )
            if result.changed:
                billing = user.billing.model_copy(
                    update={"seats": SeatAllocation(total=total, used=used)}
                )
                self.users.update_user(*revise_user(user, billing=billing, updated_at=now))
                logger.info(
                    "Seats for %s: %s/%s -> %s/%s",
                    user.id,
                    result.used_before,
                    result.total_before,
                    used,
                    total,
                )
            results.append(result)
        return results

    def migrate_legacy_roles(self) -> List[str]:
        """Rewrite families whose stored member roles still use the legacy owner alias."""

        migrated: List[str] = []
        for document in self.families.list_family_documents():
            if not has_legacy_roles(document):
                continue
            family = Family.from_document(document)
            self.families.save_family(family)
            migrated.append(family.id)
        logger.info("Migrated legacy roles in %d families", len(migrated))
        return migrated

    def change_plan(self, email: str, plan_id: str) -> UserAccount:
        user = self._require_user_by_email(email)
        if user.billing is None:
            raise StateConflictError("User has no billing information; upgrade to titular first")
        plan = get_plan_definition(plan_id)
        if plan.tier == PlanTier.MASTER and not user.is_master:
            raise ValueError("Use promote-master to assign the master plan")

        limits = plan.effective_limits(user.billing.limits)
        now = current_time(self.clock)
        billing = user.billing.model_copy(
            update={
                "plan_id": plan.id,
                "status": AccountStatus.ACTIVE,
                "renews_at": now + relativedelta(months=1),
                "seats": SeatAllocation(total=limits.family_members, used=user.billing.seats.used),
                "invites": SeatAllocation(total=limits.family_members, used=user.billing.invites.used),
            }
        )
        updated = self.users.update_user(*revise_user(user, billing=billing, updated_at=now))
        logger.info("Changed plan of %s to %s", email, plan.id)
        return updated

    def _count_seats(self, user: UserAccount) -> int:
        if not user.primary_family_id:
            return 1
        family = self.families.find_family(user.primary_family_id)
        if family is None:
            return 1
        return max(1, len(family.active_members))

    def _require_user_by_email(self, email: str) -> UserAccount:
        user = self.users.find_user_by_email(email.strip().lower())
        if user is None:
            raise LookupError(f"No user with email {email}")
        return user


__all__ = ["MaintenanceService", "SeatReconciliation"]
