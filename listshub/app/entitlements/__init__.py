"""Plan catalog, billing snapshots and entitlement evaluation."""

from .catalog import (
    PLAN_CATALOG,
    PlanDefinition,
    create_initial_billing_snapshot,
    find_plan_definition,
    free_tier_snapshot,
    get_plan_definition,
)
from .evaluator import (
    can_add_collaborator_to_list,
    can_add_item_to_list,
    can_create_family,
    can_create_list,
    can_invite_member,
)
from .models import (
    UNLIMITED,
    AccountStatus,
    BillingSnapshot,
    PermissionCheck,
    PlanLimits,
    PlanTier,
    SeatAllocation,
    UserRole,
    is_unlimited,
)

__all__ = [
    "PLAN_CATALOG",
    "UNLIMITED",
    "AccountStatus",
    "BillingSnapshot",
    "PermissionCheck",
    "PlanDefinition",
    "PlanLimits",
    "PlanTier",
    "SeatAllocation",
    "UserRole",
    "can_add_collaborator_to_list",
    "can_add_item_to_list",
    "can_create_family",
    "can_create_list",
    "can_invite_member",
    "create_initial_billing_snapshot",
    "find_plan_definition",
    "free_tier_snapshot",
    "get_plan_definition",
    "is_unlimited",
]
