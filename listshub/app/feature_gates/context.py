"""Convenience wrapper around a billing snapshot for feature gating."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from ..entitlements import (
    BillingSnapshot,
    PermissionCheck,
    PlanDefinition,
    PlanLimits,
    UserRole,
    can_add_collaborator_to_list,
    can_add_item_to_list,
    can_create_family,
    can_create_list,
    can_invite_member,
    find_plan_definition,
)
from .enforcement import require_permission


@dataclass(frozen=True)
class EntitlementContext:
    """Facade exposing gating-centric helpers for one account's billing."""

    billing: Optional[BillingSnapshot]
    role: Union[UserRole, str]

    @property
    def plan(self) -> Optional[PlanDefinition]:
        if self.billing is None:
            return None
        return find_plan_definition(self.billing.plan_id)

    @property
    def limits(self) -> Optional[PlanLimits]:
        plan = self.plan
        if plan is None or self.billing is None:
            return None
        return plan.effective_limits(self.billing.limits)

    def can_create_list(self) -> PermissionCheck:
        return can_create_list(self.billing, self.role)

    def can_invite_member(self) -> PermissionCheck:
        return can_invite_member(self.billing, self.role)

    def can_create_family(self, active_family_count: int) -> PermissionCheck:
        return can_create_family(self.billing, self.role, active_family_count)

    def can_add_item_to_list(self, current_item_count: int) -> PermissionCheck:
        return can_add_item_to_list(self.billing, self.role, current_item_count)

    def can_add_collaborator_to_list(self, current_collaborator_count: int) -> PermissionCheck:
        return can_add_collaborator_to_list(self.billing, self.role, current_collaborator_count)

    def require_list_creation(self) -> None:
        require_permission(self.can_create_list(), error_code="list_limit_reached")

    def require_member_invite(self) -> None:
        require_permission(self.can_invite_member(), error_code="member_limit_reached")

    def require_family_creation(self, active_family_count: int) -> None:
        require_permission(
            self.can_create_family(active_family_count), error_code="family_limit_reached"
        )

    def require_item_capacity(self, current_item_count: int) -> None:
        require_permission(
            self.can_add_item_to_list(current_item_count), error_code="item_limit_reached"
        )

    def require_collaborator_capacity(self, current_collaborator_count: int) -> None:
        require_permission(
            self.can_add_collaborator_to_list(current_collaborator_count),
            error_code="collaborator_limit_reached",
        )
