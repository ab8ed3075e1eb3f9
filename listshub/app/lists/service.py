"""List and item operations gated by the family owner's plan."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Protocol

from ..accounts.models import UserAccount
from ..clock import Clock, current_time
from ..entitlements import (
    can_add_collaborator_to_list,
    can_add_item_to_list,
    can_create_list,
    find_plan_definition,
    is_unlimited,
)
from ..feature_gates import FeatureGateError, require_permission
from ..families.models import Family
from ..families.service import FamilyRepository, UserRepository
from .models import ListAccess, ListItem, ListRecord, ListVisibility, PermissionRule

logger = logging.getLogger("lists")

MAX_LIST_NAME_LENGTH = 120
MAX_ITEM_NAME_LENGTH = 200


class ListRepository(Protocol):
    def create_list(self, record: ListRecord) -> ListRecord:
        ...

    def find_list(self, list_id: str) -> Optional[ListRecord]:
        ...

    def list_family_lists(self, family_id: str) -> List[ListRecord]:
        ...

    def update_list(self, record: ListRecord) -> ListRecord:
        ...

    def delete_list(self, list_id: str) -> None:
        """Delete a list together with its items."""
        ...

    def add_item(self, item: ListItem) -> ListItem:
        ...

    def find_item(self, list_id: str, item_id: str) -> Optional[ListItem]:
        ...

    def update_item(self, item: ListItem) -> ListItem:
        ...

    def delete_item(self, list_id: str, item_id: str) -> None:
        ...

    def list_items(self, list_id: str) -> List[ListItem]:
        ...

    def count_items(self, list_id: str) -> int:
        ...


def _new_id() -> str:
    return uuid.uuid4().hex


def _clean_name(value: str, label: str, max_length: int) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError(f"{label} is required")
    if len(cleaned) > max_length:
        raise ValueError(f"{label} must be at most {max_length} characters")
    return cleaned


@dataclass
class ListService:
    """Coordinates list persistence with family membership and plan limits."""

    lists: ListRepository
    families: FamilyRepository
    users: UserRepository
    clock: Optional[Clock] = None
    id_generator: Callable[[], str] = field(default=_new_id)

    def create_list(
        self,
        family_id: str,
        actor_id: str,
        name: str,
        *,
        description: Optional[str] = None,
        visibility: ListVisibility = ListVisibility.PRIVATE,
        tags: Iterable[str] = (),
    ) -> ListRecord:
        list_name = _clean_name(name, "List name", MAX_LIST_NAME_LENGTH)
        family = self.families.get_family(family_id)
        actor = self.users.get_user(actor_id)
        if not actor.is_master and not family.is_active_member(actor_id):
            raise PermissionError("Only active family members may create lists")

        owner = self._family_owner(family)
        require_permission(can_create_list(owner.billing, actor.role), error_code="list_limit_reached")
        limit = None if actor.is_master else self._list_limit(owner)
        if not self.users.increment_lists_created(owner.id, limit):
            # Another request took the last slot between the check and the write.
            raise FeatureGateError(code="list_limit_reached", message="List limit reached")

        now = current_time(self.clock)
        record = ListRecord(
            id=self.id_generator(),
            family_id=family.id,
            owner_id=actor.id,
            name=list_name,
            description=(description or "").strip() or None,
            visibility=visibility,
            tags=list(dict.fromkeys(tag.strip() for tag in tags if tag and tag.strip())),
            permissions=[
                PermissionRule(
                    user_id=actor.id,
                    can_create_items=True,
                    can_toggle_items=True,
                    can_delete_items=True,
                )
            ],
            created_at=now,
            updated_at=now,
        )
        try:
            stored = self.lists.create_list(record)
        except Exception:
            self.users.release_list_slot(owner.id)
            raise
        logger.info("Created list %s in family %s", stored.id, family.id)
        return stored

    def get_list(self, list_id: str, actor_id: str) -> ListRecord:
        record, family, actor = self._load(list_id, actor_id)
        if not self.access_for(record, family, actor).can_view:
            raise PermissionError("You do not have access to this list")
        return record

    def delete_list(self, list_id: str, actor_id: str) -> None:
        record, family, actor = self._load(list_id, actor_id)
        if not (actor.is_master or record.owner_id == actor.id or family.owner_id == actor.id):
            raise PermissionError("Only the list owner or the family owner may delete this list")
        self.lists.delete_list(record.id)
        self.users.release_list_slot(family.owner_id)
        logger.info("Deleted list %s from family %s", record.id, family.id)

    def list_items(self, list_id: str, actor_id: str) -> List[ListItem]:
        self.get_list(list_id, actor_id)
        return self.lists.list_items(list_id)

    def add_item(
        self,
        list_id: str,
        actor_id: str,
        name: str,
        *,
        notes: Optional[str] = None,
        quantity: Optional[float] = None,
    ) -> ListItem:
        item_name = _clean_name(name, "Item name", MAX_ITEM_NAME_LENGTH)
        record, family, actor = self._load(list_id, actor_id)
        if not self.access_for(record, family, actor).can_create_items:
            raise PermissionError("You cannot add items to this list")

        owner = self._family_owner(family)
        require_permission(
            can_add_item_to_list(owner.billing, actor.role, self.lists.count_items(record.id)),
            error_code="item_limit_reached",
        )
        now = current_time(self.clock)
        return self.lists.add_item(
            ListItem(
                id=self.id_generator(),
                list_id=record.id,
                name=item_name,
                notes=(notes or "").strip() or None,
                quantity=quantity,
                created_by=actor.id,
                created_at=now,
            )
        )

    def toggle_item(self, list_id: str, item_id: str, actor_id: str) -> ListItem:
        record, family, actor = self._load(list_id, actor_id)
        if not self.access_for(record, family, actor).can_toggle_items:
            raise PermissionError("You cannot check items on this list")
        item = self._require_item(list_id, item_id)
        if item.checked:
            updated = item.model_copy(update={"checked": False, "checked_at": None, "checked_by": None})
        else:
            updated = item.model_copy(
                update={"checked": True, "checked_at": current_time(self.clock), "checked_by": actor.id}
            )
        return self.lists.update_item(updated)

    def delete_item(self, list_id: str, item_id: str, actor_id: str) -> None:
        record, family, actor = self._load(list_id, actor_id)
        if not self.access_for(record, family, actor).can_delete_items:
            raise PermissionError("You cannot delete items from this list")
        self._require_item(list_id, item_id)
        self.lists.delete_item(list_id, item_id)

    def share_list_with_user(
        self,
        list_id: str,
        actor_id: str,
        user_id: str,
        *,
        can_create_items: bool = True,
        can_toggle_items: bool = True,
        can_delete_items: bool = False,
    ) -> ListRecord:
        record, family, actor = self._load(list_id, actor_id)
        if not self.access_for(record, family, actor).can_manage:
            raise PermissionError("Only the list owner or the family owner may share this list")
        if user_id == record.owner_id:
            raise ValueError("The list owner already has full access")
        profile = family.members.get(user_id)
        if profile is None or not profile.is_active:
            raise LookupError("User is not an active member of this family")

        if user_id not in record.collaborators:
            owner = self._family_owner(family)
            require_permission(
                can_add_collaborator_to_list(owner.billing, actor.role, len(record.collaborators)),
                error_code="collaborator_limit_reached",
            )

        now = current_time(self.clock)
        rule = PermissionRule(
            user_id=user_id,
            can_create_items=can_create_items,
            can_toggle_items=can_toggle_items,
            can_delete_items=can_delete_items,
        )
        collaborators = record.collaborators if user_id in record.collaborators else [*record.collaborators, user_id]
        visibility = ListVisibility.SHARED if record.visibility == ListVisibility.PRIVATE else record.visibility
        updated = self.lists.update_list(
            record.model_copy(
                update={
                    "permissions": [*(r for r in record.permissions if r.user_id != user_id), rule],
                    "collaborators": collaborators,
                    "visibility": visibility,
                    "updated_at": now,
                }
            )
        )
        allowed = list(profile.allowed_lists or [])
        if not profile.is_owner and record.id not in allowed:
            self.families.upsert_member(
                family.id, profile.model_copy(update={"allowed_lists": [*allowed, record.id]}), now
            )
        return updated

    def remove_list_access(self, list_id: str, actor_id: str, user_id: str) -> ListRecord:
        record, family, actor = self._load(list_id, actor_id)
        if not self.access_for(record, family, actor).can_manage:
            raise PermissionError("Only the list owner or the family owner may change access")
        if user_id == record.owner_id:
            raise ValueError("The list owner cannot lose access to their own list")

        now = current_time(self.clock)
        updated = self.lists.update_list(
            record.model_copy(
                update={
                    "permissions": [rule for rule in record.permissions if rule.user_id != user_id],
                    "collaborators": [uid for uid in record.collaborators if uid != user_id],
                    "updated_at": now,
                }
            )
        )
        profile = family.members.get(user_id)
        if profile is not None and record.id in (profile.allowed_lists or []):
            remaining = [lid for lid in profile.allowed_lists or [] if lid != record.id]
            self.families.upsert_member(
                family.id, profile.model_copy(update={"allowed_lists": remaining}), now
            )
        return updated

    def lists_visible_to(self, family_id: str, user_id: str) -> List[ListRecord]:
        family = self.families.get_family(family_id)
        user = self.users.get_user(user_id)
        if not user.is_master and not family.is_active_member(user_id):
            raise PermissionError("User is not an active member of this family")
        return [
            record
            for record in self.lists.list_family_lists(family_id)
            if self.access_for(record, family, user).can_view
        ]

    def access_for(self, record: ListRecord, family: Family, user: UserAccount) -> ListAccess:
        if user.is_master or record.owner_id == user.id or family.owner_id == user.id:
            return ListAccess.full()
        profile = family.members.get(user.id)
        if profile is None or not profile.is_active:
            return ListAccess.none()
        rule = record.rule_for(user.id)
        if rule is not None:
            return ListAccess(
                can_view=True,
                can_create_items=rule.can_create_items,
                can_toggle_items=rule.can_toggle_items,
                can_delete_items=rule.can_delete_items,
            )
        if record.visibility == ListVisibility.PUBLIC or profile.can_view_list(record.id):
            return ListAccess(can_view=True)
        return ListAccess.none()

    def _load(self, list_id: str, actor_id: str):
        record = self.lists.find_list(list_id)
        if record is None:
            raise LookupError("List not found")
        family = self.families.get_family(record.family_id)
        actor = self.users.get_user(actor_id)
        return record, family, actor

    def _require_item(self, list_id: str, item_id: str) -> ListItem:
        item = self.lists.find_item(list_id, item_id)
        if item is None:
            raise LookupError("Item not found")
        return item

    def _family_owner(self, family: Family) -> UserAccount:
        return self.users.get_user(family.owner_id)

    def _list_limit(self, owner: UserAccount) -> Optional[int]:
        if owner.billing is None:
            return None
        plan = find_plan_definition(owner.billing.plan_id)
        if owner.is_master or plan is None or plan.is_unlimited:
            return None
        limit = plan.effective_limits(owner.billing.limits).lists_per_family
        return None if is_unlimited(limit) else int(limit)


__all__ = ["ListRepository", "ListService"]
