"""Application wiring for operator tooling."""
from __future__ import annotations

from functools import lru_cache

from ..accounts.repository import PostgresUserRepository
from ..entitlements.repository import PostgresPlanRepository
from ..families.repository import PostgresFamilyRepository
from ..maintenance.service import MaintenanceService


@lru_cache(maxsize=1)
def get_maintenance_service() -> MaintenanceService:
    return MaintenanceService(
        users=PostgresUserRepository(),
        families=PostgresFamilyRepository(),
        plans=PostgresPlanRepository(),
    )


__all__ = ["get_maintenance_service"]
