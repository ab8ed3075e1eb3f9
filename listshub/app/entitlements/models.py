"""Domain models for plans, billing snapshots and entitlement decisions."""
from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

Quantity = Union[int, float]
"""Integer counter or limit; ``math.inf`` marks an unlimited value."""

UNLIMITED: float = math.inf


def is_unlimited(value: Optional[Quantity]) -> bool:
    """Return whether a limit value should always pass comparisons."""

    return value is None or not math.isfinite(value)


def _decode_quantity(value: object) -> object:
    # Stored documents cannot carry Infinity, so unlimited values round-trip as null.
    if value is None:
        return UNLIMITED
    return value


def _encode_quantity(value: Quantity) -> Optional[Quantity]:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class PlanTier(str, Enum):
    """Canonical identifiers for subscription tiers."""

    FREE = "free"
    PLUS = "plus"
    PREMIUM = "premium"
    MASTER = "master"


class UserRole(str, Enum):
    """Platform level role of a user account."""

    MASTER = "master"
    TITULAR = "titular"
    MEMBER = "member"


class AccountStatus(str, Enum):
    """Billing/account lifecycle state."""

    ACTIVE = "active"
    GRACE_PERIOD = "grace_period"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PlanLimits:
    """Numeric caps granted by a plan. ``math.inf`` means unlimited."""

    families: Quantity = 1
    family_members: Quantity = 3
    lists_per_family: Quantity = 3
    items_per_list: Quantity = 50
    collaborators_per_list: Quantity = 3

    def with_overrides(self, overrides: Mapping[str, Quantity]) -> "PlanLimits":
        """Return limits with any recognised override keys applied."""

        known = {field.name for field in fields(self)}
        applicable = {key: value for key, value in overrides.items() if key in known}
        if not applicable:
            return self
        return replace(self, **applicable)

    def to_document(self) -> Dict[str, Optional[Quantity]]:
        return {field.name: _encode_quantity(getattr(self, field.name)) for field in fields(self)}

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "PlanLimits":
        known = {field.name for field in fields(cls)}
        return cls(**{key: _decode_quantity(value) for key, value in document.items() if key in known})


class SeatAllocation(BaseModel):
    """Used/total pair for seats and invites on a billing snapshot."""

    total: Quantity = 0
    used: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @field_validator("total", mode="before")
    @classmethod
    def _decode_total(cls, value: object) -> object:
        return _decode_quantity(value)

    @field_serializer("total")
    def _serialize_total(self, value: Quantity) -> Optional[Quantity]:
        return _encode_quantity(value)

    @property
    def remaining(self) -> Quantity:
        if is_unlimited(self.total):
            return UNLIMITED
        return max(0, int(self.total) - self.used)

    @property
    def has_capacity(self) -> bool:
        return is_unlimited(self.total) or self.used < self.total


class BillingSnapshot(BaseModel):
    """Billing state stored on a titular or master user document."""

    plan_id: str
    status: AccountStatus = AccountStatus.ACTIVE
    renews_at: Optional[datetime] = None
    seats: SeatAllocation = Field(default_factory=SeatAllocation)
    invites: SeatAllocation = Field(default_factory=SeatAllocation)
    limits: Dict[str, Quantity] = Field(
        default_factory=dict,
        description="Partial overrides of the plan limits granted to this account.",
    )
    lists_created: int = Field(default=0, ge=0)
    items_tracked: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @field_validator("limits", mode="before")
    @classmethod
    def _decode_limits(cls, value: object) -> object:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {key: _decode_quantity(item) for key, item in value.items()}
        return value

    @field_serializer("limits")
    def _serialize_limits(self, value: Dict[str, Quantity]) -> Dict[str, Optional[Quantity]]:
        return {key: _encode_quantity(item) for key, item in value.items()}

    @property
    def is_in_good_standing(self) -> bool:
        return self.status in {AccountStatus.ACTIVE, AccountStatus.GRACE_PERIOD}


class PermissionCheck(BaseModel):
    """Outcome of an entitlement evaluation."""

    allowed: bool
    reason: Optional[str] = None
    limit: Optional[Quantity] = None
    current: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @field_serializer("limit")
    def _serialize_limit(self, value: Optional[Quantity]) -> Optional[Quantity]:
        return None if value is None else _encode_quantity(value)

    @classmethod
    def allow(cls, *, limit: Optional[Quantity] = None, current: Optional[int] = None) -> "PermissionCheck":
        return cls(allowed=True, limit=limit, current=current)

    @classmethod
    def deny(
        cls,
        reason: str,
        *,
        limit: Optional[Quantity] = None,
        current: Optional[int] = None,
    ) -> "PermissionCheck":
        return cls(allowed=False, reason=reason, limit=limit, current=current)
