"""Shared lists, their items and per-user permission rules."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ListVisibility(str, Enum):
    PRIVATE = "private"
    SHARED = "shared"
    PUBLIC = "public"


class PermissionRule(BaseModel):
    user_id: str
    can_create_items: bool = True
    can_toggle_items: bool = True
    can_delete_items: bool = False

    model_config = ConfigDict(frozen=True)


class ListRecord(BaseModel):
    id: str
    family_id: str
    owner_id: str
    name: str
    description: Optional[str] = None
    visibility: ListVisibility = ListVisibility.PRIVATE
    tags: List[str] = Field(default_factory=list)
    permissions: List[PermissionRule] = Field(default_factory=list)
    collaborators: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(frozen=True)

    def rule_for(self, user_id: str) -> Optional[PermissionRule]:
        for rule in self.permissions:
            if rule.user_id == user_id:
                return rule
        return None


class ListItem(BaseModel):
    id: str
    list_id: str
    name: str
    notes: Optional[str] = None
    quantity: Optional[float] = Field(default=None, gt=0)
    checked: bool = False
    created_by: str
    created_at: datetime
    checked_at: Optional[datetime] = None
    checked_by: Optional[str] = None

    model_config = ConfigDict(frozen=True)


@dataclass(frozen=True)
class ListAccess:
    """What one user may do on one list."""

    can_view: bool = False
    can_create_items: bool = False
    can_toggle_items: bool = False
    can_delete_items: bool = False
    can_manage: bool = False

    @classmethod
    def full(cls) -> "ListAccess":
        return cls(True, True, True, True, True)

    @classmethod
    def none(cls) -> "ListAccess":
        return cls()


__all__ = ["ListAccess", "ListItem", "ListRecord", "ListVisibility", "PermissionRule"]
