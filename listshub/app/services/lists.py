"""Application wiring for the list service."""
from __future__ import annotations

from functools import lru_cache

from ..accounts.repository import PostgresUserRepository
from ..families.repository import PostgresFamilyRepository
from ..lists.repository import PostgresListRepository
from ..lists.service import ListService


@lru_cache(maxsize=1)
def get_list_service() -> ListService:
    return ListService(
        lists=PostgresListRepository(),
        families=PostgresFamilyRepository(),
        users=PostgresUserRepository(),
    )


__all__ = ["get_list_service"]
