"""Turning evaluator denials into :class:`FeatureGateError`."""
from __future__ import annotations

from typing import Optional

from ..entitlements.models import PermissionCheck, is_unlimited
from .exceptions import FeatureGateError


def require_permission(
    check: PermissionCheck,
    *,
    error_code: str = "plan_limit_reached",
    message: Optional[str] = None,
) -> PermissionCheck:
    """Raise :class:`FeatureGateError` unless ``check`` allows the action.

    Parameters
    ----------
    check:
        Result of one of the entitlement evaluator functions.
    error_code:
        Machine readable code surfaced to API callers on denial.
    message:
        Optional override for the human readable message. Defaults to the
        reason reported by the evaluator.
    """

    if check.allowed:
        return check

    limit = None
    if check.limit is not None and not is_unlimited(check.limit):
        limit = int(check.limit)
    raise FeatureGateError(
        code=error_code,
        message=message or check.reason or "Action not permitted on the current plan",
        limit=limit,
        current=check.current,
    )
