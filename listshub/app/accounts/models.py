"""User aggregate and the derived predicates other services rely on."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..entitlements.models import AccountStatus, BillingSnapshot, UserRole

if TYPE_CHECKING:  # pragma: no cover
    from ..families.models import Family


class Locale(str, Enum):
    PT = "pt"
    EN = "en"


class FamilyLink(BaseModel):
    """One entry in a user's append-only family history."""

    family_id: str
    joined_at: datetime
    removed_at: Optional[datetime] = None
    invited_by: Optional[str] = None
    lists: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        return self.removed_at is None


class UserAccount(BaseModel):
    """Stored user document plus read-only derived state."""

    id: str
    email: str
    display_name: str = ""
    locale: Locale = Locale.PT
    photo_url: Optional[str] = None
    role: UserRole = UserRole.MEMBER
    status: AccountStatus = AccountStatus.ACTIVE
    families: List[FamilyLink] = Field(default_factory=list)
    primary_family_id: Optional[str] = None
    billing: Optional[BillingSnapshot] = None
    created_at: datetime
    updated_at: datetime
    last_sign_in_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_role_invariants(self) -> "UserAccount":
        if self.role == UserRole.MEMBER and self.billing is not None:
            raise ValueError("Member accounts cannot carry billing information")
        if self.role == UserRole.TITULAR:
            if self.billing is None:
                raise ValueError("Titular accounts require billing information")
            if not self.primary_family_id:
                raise ValueError("Titular accounts require a primary family")
        return self

    @property
    def is_master(self) -> bool:
        return self.role == UserRole.MASTER

    @property
    def is_titular(self) -> bool:
        """True for titular accounts and for masters, who can do anything a titular can."""

        return self.role in {UserRole.TITULAR, UserRole.MASTER}

    @property
    def is_family_member_only(self) -> bool:
        return self.role == UserRole.MEMBER

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    @property
    def active_families(self) -> List[FamilyLink]:
        """Links without ``removed_at``, one per family.

        When ``primary_family_id`` is not represented a synthetic link is added
        for it so a drifted ``families`` array never hides the working family.
        """

        seen = set()
        active: List[FamilyLink] = []
        for link in self.families:
            if link.removed_at is not None or link.family_id in seen:
                continue
            seen.add(link.family_id)
            active.append(link)
        if self.primary_family_id and self.primary_family_id not in seen:
            active.append(FamilyLink(family_id=self.primary_family_id, joined_at=self.created_at))
        return active

    @property
    def active_family_ids(self) -> List[str]:
        return [link.family_id for link in self.active_families]

    @property
    def managed_family_id(self) -> Optional[str]:
        if self.is_master:
            return None
        if self.primary_family_id:
            return self.primary_family_id
        for link in self.families:
            if link.removed_at is None:
                return link.family_id
        return None

    def belongs_to_family(self, family_id: str) -> bool:
        return family_id in self.active_family_ids

    def can_manage_family(self, family_id: str) -> bool:
        """Optimistic check comparing ``family_id`` with the primary family only.

        Usable without loading the family. Anything that writes must use
        :meth:`can_manage_family_from_record` instead.
        """

        if self.is_master:
            return True
        if not self.is_active:
            return False
        return self.role == UserRole.TITULAR and self.managed_family_id == family_id

    def can_manage_family_from_record(self, family: "Family") -> bool:
        """Authoritative check against the stored family's owner and member profile."""

        from ..families.models import FamilyRole, MemberStatus

        if self.is_master:
            return True
        if not self.is_active or family.owner_id != self.id:
            return False
        profile = family.members.get(self.id)
        return (
            profile is not None
            and profile.role == FamilyRole.OWNER
            and profile.status == MemberStatus.ACTIVE
        )

    def link_for(self, family_id: str) -> Optional[FamilyLink]:
        """Return the most recent active link for ``family_id``."""

        for link in reversed(self.families):
            if link.family_id == family_id and link.removed_at is None:
                return link
        return None

    def to_document(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: dict) -> "UserAccount":
        return cls.model_validate(document)


def revise_user(user: UserAccount, **changes: Any) -> Tuple[UserAccount, List[str]]:
    """Return a re-validated copy of ``user`` and the names of the changed fields."""

    document = user.model_dump()
    document.update(changes)
    return UserAccount.model_validate(document), sorted(changes)


def close_family_links(links: List[FamilyLink], family_id: str, removed_at: datetime) -> List[FamilyLink]:
    """Stamp ``removed_at`` on every open link to ``family_id``; entries are never dropped."""

    return [
        link.model_copy(update={"removed_at": removed_at})
        if link.family_id == family_id and link.removed_at is None
        else link
        for link in links
    ]


__all__ = ["FamilyLink", "Locale", "UserAccount", "close_family_links", "revise_user"]
