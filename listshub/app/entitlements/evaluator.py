"""Side-effect free entitlement checks over a billing snapshot.

Every function here is advisory. The layer performing the write must re-check
under its own atomicity guarantees because two clients can both see
``allowed=True`` for the last remaining seat.
"""
from __future__ import annotations

from typing import Callable, Optional, Tuple, Union

from .catalog import PlanDefinition, find_plan_definition
from .models import BillingSnapshot, PermissionCheck, PlanLimits, Quantity, UserRole, is_unlimited

_MANAGING_ROLES = {UserRole.TITULAR, UserRole.MASTER}


def _coerce_role(role: Union[UserRole, str]) -> UserRole:
    return role if isinstance(role, UserRole) else UserRole(role)


def _resolve_limits(
    billing: Optional[BillingSnapshot],
    plan: Optional[PlanDefinition],
) -> Tuple[Optional[PlanDefinition], Optional[PlanLimits], Optional[PermissionCheck]]:
    if billing is None:
        return None, None, PermissionCheck.deny("No billing information")
    if not billing.is_in_good_standing:
        return None, None, PermissionCheck.deny("Subscription inactive")
    resolved = plan or find_plan_definition(billing.plan_id)
    if resolved is None:
        return None, None, PermissionCheck.deny("Invalid plan")
    return resolved, resolved.effective_limits(billing.limits), None


def _compare(
    current: int,
    limit: Quantity,
    reason: str,
) -> PermissionCheck:
    if is_unlimited(limit):
        return PermissionCheck.allow(current=current)
    if current >= limit:
        return PermissionCheck.deny(reason, limit=limit, current=current)
    return PermissionCheck.allow(limit=limit, current=current)


def _evaluate(
    billing: Optional[BillingSnapshot],
    role: Union[UserRole, str],
    *,
    plan: Optional[PlanDefinition],
    requires_manager: Optional[str],
    measure: Callable[[BillingSnapshot, PlanLimits], Tuple[int, Quantity]],
    reason: str,
) -> PermissionCheck:
    resolved_role = _coerce_role(role)
    if resolved_role == UserRole.MASTER:
        return PermissionCheck.allow()
    if requires_manager and resolved_role not in _MANAGING_ROLES:
        return PermissionCheck.deny(requires_manager)

    resolved_plan, limits, failure = _resolve_limits(billing, plan)
    if failure is not None:
        return failure
    assert billing is not None and limits is not None and resolved_plan is not None
    if resolved_plan.is_unlimited:
        return PermissionCheck.allow()

    current, limit = measure(billing, limits)
    return _compare(current, limit, reason)


def can_create_list(
    billing: Optional[BillingSnapshot],
    role: Union[UserRole, str],
    *,
    plan: Optional[PlanDefinition] = None,
) -> PermissionCheck:
    return _evaluate(
        billing,
        role,
        plan=plan,
        requires_manager="Only titular accounts may create lists",
        measure=lambda snapshot, limits: (snapshot.lists_created, limits.lists_per_family),
        reason="List limit reached",
    )


def can_invite_member(
    billing: Optional[BillingSnapshot],
    role: Union[UserRole, str],
    *,
    plan: Optional[PlanDefinition] = None,
) -> PermissionCheck:
    return _evaluate(
        billing,
        role,
        plan=plan,
        requires_manager="Only titular accounts may invite members",
        measure=lambda snapshot, limits: (snapshot.seats.used, limits.family_members),
        reason="Member limit reached",
    )


def can_create_family(
    billing: Optional[BillingSnapshot],
    role: Union[UserRole, str],
    active_family_count: int,
    *,
    plan: Optional[PlanDefinition] = None,
) -> PermissionCheck:
    return _evaluate(
        billing,
        role,
        plan=plan,
        requires_manager="Only titular accounts may create families",
        measure=lambda _snapshot, limits: (active_family_count, limits.families),
        reason="Family limit reached",
    )


def can_add_item_to_list(
    billing: Optional[BillingSnapshot],
    role: Union[UserRole, str],
    current_item_count: int,
    *,
    plan: Optional[PlanDefinition] = None,
) -> PermissionCheck:
    """Check the per-list item cap. ``billing`` belongs to the family owner."""

    return _evaluate(
        billing,
        role,
        plan=plan,
        requires_manager=None,
        measure=lambda _snapshot, limits: (current_item_count, limits.items_per_list),
        reason="Item limit per list reached",
    )


def can_add_collaborator_to_list(
    billing: Optional[BillingSnapshot],
    role: Union[UserRole, str],
    current_collaborator_count: int,
    *,
    plan: Optional[PlanDefinition] = None,
) -> PermissionCheck:
    return _evaluate(
        billing,
        role,
        plan=plan,
        requires_manager=None,
        measure=lambda _snapshot, limits: (current_collaborator_count, limits.collaborators_per_list),
        reason="Collaborator limit per list reached",
    )


__all__ = [
    "can_add_collaborator_to_list",
    "can_add_item_to_list",
    "can_create_family",
    "can_create_list",
    "can_invite_member",
]
