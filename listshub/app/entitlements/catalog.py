"""Static catalog definitions for subscription plans."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Tuple

from dateutil.relativedelta import relativedelta

from .models import (
    UNLIMITED,
    AccountStatus,
    BillingSnapshot,
    PlanLimits,
    PlanTier,
    Quantity,
    SeatAllocation,
)

FREE_TIER_SEATS_TOTAL = 3
FREE_TIER_SEATS_USED = 1


@dataclass(frozen=True)
class PlanDefinition:
    """Describes a subscription tier and the limits it grants."""

    id: str
    tier: PlanTier
    display_name: str
    translation_key: str
    limits: PlanLimits
    monthly_price: float = 0.0
    yearly_price: float = 0.0
    currency: str = "BRL"
    perks: Tuple[str, ...] = field(default_factory=tuple)
    is_unlimited: bool = False

    def effective_limits(self, overrides: Optional[Mapping[str, Quantity]] = None) -> PlanLimits:
        if not overrides:
            return self.limits
        return self.limits.with_overrides(overrides)

    def to_document(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "tier": self.tier.value,
            "display_name": self.display_name,
            "translation_key": self.translation_key,
            "limits": self.limits.to_document(),
            "monthly_price": self.monthly_price,
            "yearly_price": self.yearly_price,
            "currency": self.currency,
            "perks": list(self.perks),
            "is_unlimited": self.is_unlimited,
        }

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "PlanDefinition":
        return cls(
            id=str(document["id"]),
            tier=PlanTier(str(document["tier"])),
            display_name=str(document.get("display_name") or document["id"]),
            translation_key=str(document.get("translation_key") or f"plans.{document['id']}"),
            limits=PlanLimits.from_document(document.get("limits") or {}),  # type: ignore[arg-type]
            monthly_price=float(document.get("monthly_price") or 0),  # type: ignore[arg-type]
            yearly_price=float(document.get("yearly_price") or 0),  # type: ignore[arg-type]
            currency=str(document.get("currency") or "BRL"),
            perks=tuple(document.get("perks") or ()),  # type: ignore[arg-type]
            is_unlimited=bool(document.get("is_unlimited", False)),
        )


PLAN_CATALOG: Dict[str, PlanDefinition] = {
    PlanTier.FREE.value: PlanDefinition(
        id="free",
        tier=PlanTier.FREE,
        display_name="Free",
        translation_key="plans.free",
        limits=PlanLimits(
            families=1,
            family_members=FREE_TIER_SEATS_TOTAL,
            lists_per_family=3,
            items_per_list=50,
            collaborators_per_list=3,
        ),
        perks=("plans.free.perk1", "plans.free.perk2", "plans.free.perk3"),
    ),
    PlanTier.PLUS.value: PlanDefinition(
        id="plus",
        tier=PlanTier.PLUS,
        display_name="Plus",
        translation_key="plans.plus",
        limits=PlanLimits(
            families=1,
            family_members=5,
            lists_per_family=10,
            items_per_list=100,
            collaborators_per_list=5,
        ),
        monthly_price=19.9,
        yearly_price=199.0,
        perks=("plans.plus.perk1", "plans.plus.perk2", "plans.plus.perk3", "plans.plus.perk4"),
    ),
    PlanTier.PREMIUM.value: PlanDefinition(
        id="premium",
        tier=PlanTier.PREMIUM,
        display_name="Premium",
        translation_key="plans.premium",
        limits=PlanLimits(
            families=1,
            family_members=15,
            lists_per_family=50,
            items_per_list=200,
            collaborators_per_list=15,
        ),
        monthly_price=39.9,
        yearly_price=399.0,
        perks=(
            "plans.premium.perk1",
            "plans.premium.perk2",
            "plans.premium.perk3",
            "plans.premium.perk4",
            "plans.premium.perk5",
        ),
    ),
    PlanTier.MASTER.value: PlanDefinition(
        id="master",
        tier=PlanTier.MASTER,
        display_name="Master",
        translation_key="plans.master",
        limits=PlanLimits(
            families=UNLIMITED,
            family_members=UNLIMITED,
            lists_per_family=UNLIMITED,
            items_per_list=UNLIMITED,
            collaborators_per_list=UNLIMITED,
        ),
        perks=("plans.master.perk1", "plans.master.perk2", "plans.master.perk3"),
        is_unlimited=True,
    ),
}


def get_plan_definition(plan_id: str) -> PlanDefinition:
    """Return a plan definition, raising if unsupported."""

    try:
        return PLAN_CATALOG[plan_id]
    except KeyError as exc:
        raise KeyError(f"Unknown plan id: {plan_id}") from exc


def find_plan_definition(plan_id: Optional[str]) -> Optional[PlanDefinition]:
    if not plan_id:
        return None
    return PLAN_CATALOG.get(plan_id)


def create_initial_billing_snapshot(
    plan_id: str,
    custom_limits: Optional[Mapping[str, Quantity]] = None,
    *,
    seats_used: int = 0,
    now: Optional[datetime] = None,
) -> BillingSnapshot:
    """Build a fresh billing snapshot for a plan, one month from ``now``."""

    plan = get_plan_definition(plan_id)
    limits = plan.effective_limits(custom_limits)
    started_at = now or datetime.now(timezone.utc)
    return BillingSnapshot(
        plan_id=plan.id,
        status=AccountStatus.ACTIVE,
        renews_at=started_at + relativedelta(months=1),
        seats=SeatAllocation(total=limits.family_members, used=seats_used),
        invites=SeatAllocation(total=limits.family_members, used=0),
        limits=dict(custom_limits or {}),
        lists_created=0,
        items_tracked=0,
    )


def free_tier_snapshot() -> BillingSnapshot:
    """Snapshot given to a freshly provisioned titular: the owner fills one seat."""

    return BillingSnapshot(
        plan_id=PlanTier.FREE.value,
        status=AccountStatus.ACTIVE,
        seats=SeatAllocation(total=FREE_TIER_SEATS_TOTAL, used=FREE_TIER_SEATS_USED),
        invites=SeatAllocation(total=FREE_TIER_SEATS_TOTAL, used=0),
    )
