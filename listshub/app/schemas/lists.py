"""API schemas for list endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..lists.models import ListItem, ListRecord, ListVisibility, PermissionRule


class CreateListRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    visibility: ListVisibility = ListVisibility.PRIVATE
    tags: List[str] = Field(default_factory=list)


class PermissionRuleOut(BaseModel):
    user_id: str = Field(alias="userId")
    can_create_items: bool = Field(alias="canCreateItems")
    can_toggle_items: bool = Field(alias="canToggleItems")
    can_delete_items: bool = Field(alias="canDeleteItems")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_rule(cls, rule: PermissionRule) -> "PermissionRuleOut":
        return cls(**rule.model_dump())


class ListOut(BaseModel):
    id: str
    family_id: str = Field(alias="familyId")
    owner_id: str = Field(alias="ownerId")
    name: str
    description: Optional[str] = None
    visibility: ListVisibility
    tags: List[str]
    permissions: List[PermissionRuleOut]
    collaborators: List[str]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: ListRecord) -> "ListOut":
        return cls(
            id=record.id,
            family_id=record.family_id,
            owner_id=record.owner_id,
            name=record.name,
            description=record.description,
            visibility=record.visibility,
            tags=list(record.tags),
            permissions=[PermissionRuleOut.from_rule(rule) for rule in record.permissions],
            collaborators=list(record.collaborators),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ListCollectionResponse(BaseModel):
    lists: List[ListOut]


class CreateItemRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    notes: Optional[str] = None
    quantity: Optional[float] = Field(default=None, gt=0)


class ListItemOut(BaseModel):
    id: str
    list_id: str = Field(alias="listId")
    name: str
    notes: Optional[str] = None
    quantity: Optional[float] = None
    checked: bool
    created_by: str = Field(alias="createdBy")
    created_at: datetime = Field(alias="createdAt")
    checked_at: Optional[datetime] = Field(alias="checkedAt", default=None)
    checked_by: Optional[str] = Field(alias="checkedBy", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_item(cls, item: ListItem) -> "ListItemOut":
        return cls(**item.model_dump())


class ListItemCollectionResponse(BaseModel):
    items: List[ListItemOut]


class ShareListRequest(BaseModel):
    user_id: str = Field(alias="userId")
    can_create_items: bool = Field(alias="canCreateItems", default=True)
    can_toggle_items: bool = Field(alias="canToggleItems", default=True)
    can_delete_items: bool = Field(alias="canDeleteItems", default=False)

    model_config = ConfigDict(populate_by_name=True)
