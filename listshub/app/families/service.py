"""Service layer orchestrating family and membership operations."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..accounts.models import FamilyLink, Locale, UserAccount, close_family_links, revise_user
from ..clock import Clock, current_time
from ..entitlements import (
    BillingSnapshot,
    PlanTier,
    UserRole,
    can_create_family,
    create_initial_billing_snapshot,
    free_tier_snapshot,
    get_plan_definition,
)
from ..errors import StateConflictError
from ..feature_gates import require_permission
from .models import (
    Family,
    FamilyAuditAction,
    FamilyAuditEvent,
    FamilyMemberProfile,
    FamilyRole,
    MemberStatus,
)

logger = logging.getLogger("families")

MAX_FAMILY_NAME_LENGTH = 80

DEFAULT_FAMILY_NAMES = {
    Locale.PT: "Minha Família",
    Locale.EN: "My Family",
}


class UserRepository(Protocol):
    """Persistence for user documents."""

    def get_user(self, user_id: str) -> UserAccount:
        ...

    def find_user(self, user_id: str) -> Optional[UserAccount]:
        ...

    def find_user_by_email(self, email: str) -> Optional[UserAccount]:
        ...

    def list_users(self) -> List[UserAccount]:
        ...

    def create_user(self, user: UserAccount) -> UserAccount:
        ...

    def update_user(self, user: UserAccount, fields: Sequence[str]) -> UserAccount:
        """Persist only the named top-level fields of ``user``."""
        ...

    def delete_user(self, user_id: str) -> None:
        ...

    def claim_seat(self, user_id: str) -> None:
        """Increment ``billing.seats.used`` without checking the total."""
        ...

    def release_seat(self, user_id: str) -> None:
        """Decrement ``billing.seats.used`` without going below zero."""
        ...

    def increment_lists_created(self, user_id: str, limit: Optional[int]) -> bool:
        """Increment ``billing.lists_created`` if still below ``limit``."""
        ...

    def release_list_slot(self, user_id: str) -> None:
        ...


class FamilyRepository(Protocol):
    """Persistence for family documents."""

    def get_family(self, family_id: str) -> Family:
        ...

    def find_family(self, family_id: str) -> Optional[Family]:
        ...

    def list_families(self, family_ids: Optional[Iterable[str]] = None) -> List[Family]:
        ...

    def create_family(self, family: Family) -> Family:
        ...

    def upsert_member(self, family_id: str, profile: FamilyMemberProfile, updated_at: datetime) -> None:
        ...

    def rename_family(self, family_id: str, name: str, updated_at: datetime) -> None:
        ...


class AuditLogger(Protocol):
    """Interface for emitting audit events."""

    def log(self, event: FamilyAuditEvent) -> None:
        ...


def _new_family_id() -> str:
    return f"family_{uuid.uuid4().hex}"


def validate_family_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Family name is required")
    if len(cleaned) > MAX_FAMILY_NAME_LENGTH:
        raise ValueError(f"Family name must be at most {MAX_FAMILY_NAME_LENGTH} characters")
    return cleaned


def build_family(
    family_id: str,
    owner: UserAccount,
    name: str,
    now: datetime,
) -> Family:
    owner_profile = FamilyMemberProfile(
        user_id=owner.id,
        role=FamilyRole.OWNER,
        status=MemberStatus.ACTIVE,
        joined_at=now,
        display_name=owner.display_name or None,
        email=owner.email,
    )
    return Family(
        id=family_id,
        name=name,
        owner_id=owner.id,
        members={owner.id: owner_profile},
        created_at=now,
        updated_at=now,
    )


@dataclass
class MembershipService:
    """Coordinates repository access and domain invariants for families."""

    families: FamilyRepository
    users: UserRepository
    audit_logger: AuditLogger
    clock: Optional[Clock] = None
    family_id_generator: Callable[[], str] = field(default=_new_family_id)

    def create_family(self, owner_id: str, name: str) -> Family:
        """Create an additional family owned by ``owner_id``, within the plan's family cap."""

        family_name = validate_family_name(name)
        owner = self.users.get_user(owner_id)
        owned = [
            family
            for family in self.families.list_families(owner.active_family_ids)
            if family.owner_id == owner.id
        ]
        require_permission(
            can_create_family(owner.billing, owner.role, len(owned)),
            error_code="family_limit_reached",
        )

        now = current_time(self.clock)
        family = self.families.create_family(
            build_family(self.family_id_generator(), owner, family_name, now)
        )
        changes: dict = {
            "families": [*owner.families, FamilyLink(family_id=family.id, joined_at=now)],
            "updated_at": now,
        }
        if not owner.primary_family_id:
            changes["primary_family_id"] = family.id
        self.users.update_user(*revise_user(owner, **changes))
        self._audit(family.id, owner.id, owner.id, FamilyAuditAction.FAMILY_CREATED, now)
        return family

    def provision_titular(
        self,
        user_id: str,
        email: str,
        display_name: str,
        *,
        locale: Locale = Locale.PT,
        family_name: Optional[str] = None,
    ) -> Tuple[UserAccount, Family]:
        """Create the user document and the family of a self-service signup.

        The family is written first so the user never points at a family that
        does not exist.
        """

        now = current_time(self.clock)
        family_id = self.family_id_generator()
        user = UserAccount(
            id=user_id,
            email=email,
            display_name=display_name,
            locale=locale,
            role=UserRole.TITULAR,
            families=[FamilyLink(family_id=family_id, joined_at=now)],
            primary_family_id=family_id,
            billing=free_tier_snapshot(),
            created_at=now,
            updated_at=now,
        )
        name = validate_family_name(family_name or DEFAULT_FAMILY_NAMES[locale])
        family = self.families.create_family(build_family(family_id, user, name, now))
        stored = self.users.create_user(user)
        self._audit(family.id, user_id, user_id, FamilyAuditAction.FAMILY_CREATED, now)
        logger.info("Provisioned titular %s with family %s", user_id, family.id)
        return stored, family

    def add_member(
        self,
        family_id: str,
        user_id: str,
        role: FamilyRole = FamilyRole.VIEWER,
        *,
        actor_id: Optional[str] = None,
    ) -> FamilyMemberProfile:
        """Idempotently mark ``user_id`` as an active member of the family.

        A newly active member takes one of the owner's seats. Seat limits are
        not checked here; callers gate with ``can_invite_member``.
        """

        if role == FamilyRole.OWNER:
            raise ValueError("The owner role cannot be assigned to members")

        family = self.families.get_family(family_id)
        user = self.users.get_user(user_id)
        if user_id == family.owner_id:
            return family.members[user_id]

        now = current_time(self.clock)
        existing = family.members.get(user_id)
        if existing is not None and existing.is_active:
            profile = existing.model_copy(update={"role": role})
        else:
            profile = FamilyMemberProfile(
                user_id=user_id,
                role=role,
                status=MemberStatus.ACTIVE,
                joined_at=now,
                allowed_lists=list(existing.allowed_lists or []) if existing else [],
                display_name=user.display_name or None,
                email=user.email,
            )
        self.families.upsert_member(family_id, profile, now)
        if existing is None or not existing.is_active:
            self.users.claim_seat(family.owner_id)

        if user.link_for(family_id) is None:
            changes: dict = {
                "families": [
                    *user.families,
                    FamilyLink(family_id=family_id, joined_at=now, invited_by=actor_id),
                ],
                "updated_at": now,
            }
            if not user.primary_family_id:
                changes["primary_family_id"] = family_id
            self.users.update_user(*revise_user(user, **changes))

        self._audit(
            family_id,
            actor_id or family.owner_id,
            user_id,
            FamilyAuditAction.MEMBER_ADDED,
            now,
            role_before=existing.role if existing is not None and existing.is_active else None,
            role_after=role,
        )
        return profile

    def remove_member(self, family_id: str, user_id: str, actor_id: str) -> UserAccount:
        """Remove a member and re-derive their standing.

        A user left without any active family becomes the titular of a brand new
        family on the free tier. Returns the updated user.
        """

        family = self.families.get_family(family_id)
        self._require_manager(family, actor_id, "Only the family owner may remove members")
        if user_id == family.owner_id:
            raise ValueError("The family owner cannot be removed")
        profile = family.members.get(user_id)
        if profile is None or not profile.is_active:
            raise LookupError("User is not an active member of this family")

        user = self.users.get_user(user_id)
        now = current_time(self.clock)
        self.families.upsert_member(
            family_id,
            profile.model_copy(update={"status": MemberStatus.REMOVED, "removed_at": now}),
            now,
        )
        self.users.release_seat(family.owner_id)
        self._audit(
            family_id,
            actor_id,
            user_id,
            FamilyAuditAction.MEMBER_REMOVED,
            now,
            role_before=profile.role,
        )

        remaining = [link for link in user.active_families if link.family_id != family_id]
        links = close_family_links(user.families, family_id, now)
        if remaining:
            primary = user.primary_family_id
            if primary is None or primary == family_id:
                primary = remaining[0].family_id
            updated, changed = revise_user(
                user, families=links, primary_family_id=primary, updated_at=now
            )
            return self.users.update_user(updated, changed)

        return self._promote_orphan(user, links, now)

    def update_member_role(
        self,
        family_id: str,
        user_id: str,
        role: FamilyRole,
        actor_id: str,
    ) -> FamilyMemberProfile:
        if role == FamilyRole.OWNER:
            raise ValueError("The owner role cannot be assigned to members")
        family = self.families.get_family(family_id)
        self._require_manager(family, actor_id, "Only the family owner may change member roles")
        profile = self._require_non_owner_member(family, user_id)
        if profile.role == role:
            return profile

        now = current_time(self.clock)
        updated = profile.model_copy(update={"role": role})
        self.families.upsert_member(family_id, updated, now)
        self._audit(
            family_id,
            actor_id,
            user_id,
            FamilyAuditAction.ROLE_CHANGED,
            now,
            role_before=profile.role,
            role_after=role,
        )
        return updated

    def update_member_allowed_lists(
        self,
        family_id: str,
        user_id: str,
        list_ids: Iterable[str],
        actor_id: str,
    ) -> FamilyMemberProfile:
        family = self.families.get_family(family_id)
        self._require_manager(family, actor_id, "Only the family owner may change list access")
        profile = self._require_non_owner_member(family, user_id)

        allowed = list(dict.fromkeys(list_id for list_id in list_ids if list_id))
        now = current_time(self.clock)
        updated = profile.model_copy(update={"allowed_lists": allowed})
        self.families.upsert_member(family_id, updated, now)
        self._audit(
            family_id,
            actor_id,
            user_id,
            FamilyAuditAction.LISTS_CHANGED,
            now,
            metadata={"allowed_lists": ",".join(allowed)},
        )
        return updated

    def rename_family(self, family_id: str, name: str, actor_id: str) -> Family:
        family_name = validate_family_name(name)
        family = self.families.get_family(family_id)
        self._require_manager(family, actor_id, "Only the family owner may rename the family")
        now = current_time(self.clock)
        self.families.rename_family(family_id, family_name, now)
        self._audit(family_id, actor_id, family.owner_id, FamilyAuditAction.FAMILY_RENAMED, now)
        return family.model_copy(update={"name": family_name, "updated_at": now})

    def list_user_families(self, user_id: str) -> List[Family]:
        user = self.users.get_user(user_id)
        order = user.active_family_ids
        families = {family.id: family for family in self.families.list_families(order)}
        return [
            families[family_id]
            for family_id in order
            if family_id in families and families[family_id].is_active_member(user_id)
        ]

    def switch_primary_family(self, user_id: str, family_id: str) -> UserAccount:
        user = self.users.get_user(user_id)
        family = self.families.get_family(family_id)
        if not user.is_master and not family.is_active_member(user_id):
            raise PermissionError("User is not an active member of this family")
        if user.role == UserRole.TITULAR and family.owner_id != user.id:
            raise PermissionError("Titular accounts may only switch to a family they own")
        if user.primary_family_id == family_id:
            return user

        now = current_time(self.clock)
        updated = self.users.update_user(
            *revise_user(user, primary_family_id=family_id, updated_at=now)
        )
        self._audit(family_id, user_id, user_id, FamilyAuditAction.PRIMARY_SWITCHED, now)
        return updated

    def upgrade_to_titular(
        self,
        user_id: str,
        plan_id: str = PlanTier.FREE.value,
        *,
        family_name: Optional[str] = None,
    ) -> Tuple[UserAccount, Family]:
        """Turn a member into the titular of a new family on ``plan_id``."""

        user = self.users.get_user(user_id)
        if user.is_titular:
            raise StateConflictError("User is already a titular account")
        plan = get_plan_definition(plan_id)
        if plan.tier == PlanTier.MASTER:
            raise PermissionError("The master plan cannot be self-assigned")

        now = current_time(self.clock)
        name = validate_family_name(family_name or DEFAULT_FAMILY_NAMES[user.locale])
        family = self.families.create_family(
            build_family(self.family_id_generator(), user, name, now)
        )
        billing = self._initial_billing(plan.id, now)
        updated = self.users.update_user(
            *revise_user(
                user,
                role=UserRole.TITULAR,
                billing=billing,
                primary_family_id=family.id,
                families=[*user.families, FamilyLink(family_id=family.id, joined_at=now)],
                updated_at=now,
            )
        )
        self._audit(family.id, user_id, user_id, FamilyAuditAction.MEMBER_PROMOTED, now)
        logger.info("Upgraded %s to titular on plan %s", user_id, plan.id)
        return updated, family

    def _promote_orphan(self, user: UserAccount, links: List[FamilyLink], now: datetime) -> UserAccount:
        family = self.families.create_family(
            build_family(
                self.family_id_generator(),
                user,
                DEFAULT_FAMILY_NAMES[user.locale],
                now,
            )
        )
        role = UserRole.MASTER if user.is_master else UserRole.TITULAR
        billing = user.billing if user.is_master and user.billing else free_tier_snapshot()
        updated = self.users.update_user(
            *revise_user(
                user,
                role=role,
                billing=billing,
                primary_family_id=family.id,
                families=[*links, FamilyLink(family_id=family.id, joined_at=now)],
                updated_at=now,
            )
        )
        self._audit(family.id, user.id, user.id, FamilyAuditAction.MEMBER_PROMOTED, now)
        logger.info("Promoted %s to titular of new family %s after removal", user.id, family.id)
        return updated

    def _initial_billing(self, plan_id: str, now: datetime) -> BillingSnapshot:
        if plan_id == PlanTier.FREE.value:
            return free_tier_snapshot()
        return create_initial_billing_snapshot(plan_id, seats_used=1, now=now)

    def _require_manager(self, family: Family, actor_id: str, message: str) -> None:
        if family.owner_id == actor_id:
            return
        actor = self.users.find_user(actor_id)
        if actor is None or not actor.is_master:
            raise PermissionError(message)

    def _require_non_owner_member(self, family: Family, user_id: str) -> FamilyMemberProfile:
        if user_id == family.owner_id:
            raise ValueError("The family owner's membership cannot be changed")
        profile = family.members.get(user_id)
        if profile is None or not profile.is_active:
            raise LookupError("User is not an active member of this family")
        return profile

    def _audit(
        self,
        family_id: str,
        actor_id: str,
        subject_id: str,
        action: FamilyAuditAction,
        timestamp: datetime,
        *,
        role_before: Optional[FamilyRole] = None,
        role_after: Optional[FamilyRole] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        self.audit_logger.log(
            FamilyAuditEvent(
                family_id=family_id,
                actor_id=actor_id,
                subject_id=subject_id,
                action=action,
                role_before=role_before,
                role_after=role_after,
                timestamp=timestamp,
                metadata=metadata or {},
            )
        )


__all__ = [
    "AuditLogger",
    "DEFAULT_FAMILY_NAMES",
    "FamilyRepository",
    "MembershipService",
    "UserRepository",
    "build_family",
    "validate_family_name",
]
