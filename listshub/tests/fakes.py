from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from listshub.app.accounts.auth import AuthIdentity, IdentityStore, PasswordResetNotifier
from listshub.app.accounts.models import Locale, UserAccount
from listshub.app.entitlements import PlanDefinition, SeatAllocation
from listshub.app.errors import StateConflictError
from listshub.app.families.models import Family, FamilyAuditEvent, FamilyMemberProfile
from listshub.app.families.service import AuditLogger, FamilyRepository, UserRepository
from listshub.app.invites.models import FamilyInvite, InviteRedemption, InviteStatus, RedemptionOutcome
from listshub.app.invites.service import InviteRepository
from listshub.app.lists.models import ListItem, ListRecord
from listshub.app.lists.service import ListRepository

FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class MutableClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self.users: Dict[str, UserAccount] = {}

    def get_user(self, user_id: str) -> UserAccount:
        try:
            return self.users[user_id]
        except KeyError as exc:
            raise LookupError("User not found") from exc

    def find_user(self, user_id: str) -> Optional[UserAccount]:
        return self.users.get(user_id)

    def find_user_by_email(self, email: str) -> Optional[UserAccount]:
        for user in self.users.values():
            if user.email.lower() == email.lower():
                return user
        return None

    def list_users(self) -> List[UserAccount]:
        return list(self.users.values())

    def create_user(self, user: UserAccount) -> UserAccount:
        if user.id in self.users:
            raise StateConflictError("User already exists")
        self.users[user.id] = user
        return user

    def update_user(self, user: UserAccount, fields: Sequence[str]) -> UserAccount:
        stored = self.get_user(user.id)
        updated = stored.model_copy(update={name: getattr(user, name) for name in fields})
        self.users[user.id] = updated
        return updated

    def delete_user(self, user_id: str) -> None:
        self.users.pop(user_id, None)

    def claim_seat(self, user_id: str) -> None:
        self._adjust_seats(user_id, 1)

    def release_seat(self, user_id: str) -> None:
        self._adjust_seats(user_id, -1)

    def increment_lists_created(self, user_id: str, limit: Optional[int]) -> bool:
        user = self.get_user(user_id)
        if user.billing is None:
            return False
        if limit is not None and user.billing.lists_created >= limit:
            return False
        self._set_billing(user, lists_created=user.billing.lists_created + 1)
        return True

    def release_list_slot(self, user_id: str) -> None:
        user = self.get_user(user_id)
        if user.billing is not None:
            self._set_billing(user, lists_created=max(0, user.billing.lists_created - 1))

    def _adjust_seats(self, user_id: str, delta: int) -> None:
        user = self.get_user(user_id)
        if user.billing is None:
            return
        seats = user.billing.seats
        self._set_billing(user, seats=SeatAllocation(total=seats.total, used=max(0, seats.used + delta)))

    def _set_billing(self, user: UserAccount, **changes) -> None:
        billing = user.billing.model_copy(update=changes)
        self.users[user.id] = user.model_copy(update={"billing": billing})


class InMemoryFamilyRepository(FamilyRepository):
    def __init__(self) -> None:
        self.families: Dict[str, Family] = {}
        self.raw_documents: Dict[str, dict] = {}

    def get_family(self, family_id: str) -> Family:
        try:
            return self.families[family_id]
        except KeyError as exc:
            raise LookupError("Family not found") from exc

    def find_family(self, family_id: str) -> Optional[Family]:
        return self.families.get(family_id)

    def list_families(self, family_ids: Optional[Iterable[str]] = None) -> List[Family]:
        if family_ids is None:
            return list(self.families.values())
        return [self.families[family_id] for family_id in family_ids if family_id in self.families]

    def create_family(self, family: Family) -> Family:
        if family.id in self.families:
            raise StateConflictError("Family already exists")
        self.families[family.id] = family
        return family

    def upsert_member(self, family_id: str, profile: FamilyMemberProfile, updated_at: datetime) -> None:
        family = self.get_family(family_id)
        self.families[family_id] = family.model_copy(
            update={"members": {**family.members, profile.user_id: profile}, "updated_at": updated_at}
        )

    def rename_family(self, family_id: str, name: str, updated_at: datetime) -> None:
        family = self.get_family(family_id)
        self.families[family_id] = family.model_copy(update={"name": name, "updated_at": updated_at})

    def list_family_documents(self) -> List[dict]:
        return [
            self.raw_documents.get(family_id) or family.to_document()
            for family_id, family in self.families.items()
        ]

    def save_family(self, family: Family) -> Family:
        self.families[family.id] = family
        self.raw_documents.pop(family.id, None)
        return family


class InMemoryInviteRepository(InviteRepository):
    """Mirrors the conditional redemption write of the PostgreSQL repository."""

    def __init__(self, users: InMemoryUserRepository, families: InMemoryFamilyRepository) -> None:
        self.users = users
        self.families = families
        self.invites: Dict[str, FamilyInvite] = {}

    def create_invite(self, invite: FamilyInvite) -> FamilyInvite:
        self.invites[invite.id] = invite
        return invite

    def get_invite(self, family_id: str, invite_id: str) -> Optional[FamilyInvite]:
        invite = self.invites.get(invite_id)
        if invite is None or invite.family_id != family_id:
            return None
        return invite

    def find_by_token(self, token: str) -> Optional[FamilyInvite]:
        for invite in self.invites.values():
            if invite.token == token:
                return invite
        return None

    def find_by_code(self, code: str, family_id: Optional[str] = None) -> List[FamilyInvite]:
        return [
            invite
            for invite in self.invites.values()
            if invite.code == code.upper() and (family_id is None or invite.family_id == family_id)
        ]

    def list_family_invites(self, family_id: str) -> List[FamilyInvite]:
        return [invite for invite in self.invites.values() if invite.family_id == family_id]

    def pending_code_exists(self, family_id: str, code: str) -> bool:
        return any(
            invite.family_id == family_id and invite.code == code and invite.status == InviteStatus.PENDING
            for invite in self.invites.values()
        )

    def mark_revoked(self, family_id: str, invite_id: str, revoked_at: datetime) -> bool:
        invite = self.get_invite(family_id, invite_id)
        if invite is None or invite.status != InviteStatus.PENDING:
            return False
        self.invites[invite_id] = invite.model_copy(
            update={"status": InviteStatus.REVOKED, "revoked_at": revoked_at}
        )
        return True

    def apply_redemption(self, redemption: InviteRedemption) -> RedemptionOutcome:
        owner = self.users.find_user(redemption.owner_id)
        if owner is None or owner.billing is None or not owner.billing.seats.has_capacity:
            return RedemptionOutcome.SEATS_EXHAUSTED
        stored = self.invites.get(redemption.invite.id)
        if (
            stored is None
            or stored.status != InviteStatus.PENDING
            or stored.used_count != redemption.expected_used_count
        ):
            return RedemptionOutcome.INVITE_CHANGED

        self.invites[stored.id] = stored.model_copy(
            update={
                "used_count": stored.used_count + 1,
                "accepted_by": [*stored.accepted_by, redemption.user_id],
                "status": redemption.next_status,
            }
        )
        self.users._adjust_seats(owner.id, 1)
        self.families.upsert_member(
            stored.family_id, redemption.member_profile(), redemption.redeemed_at
        )
        user = self.users.get_user(redemption.user_id)
        changes: dict = {"families": [*user.families, redemption.family_link()]}
        if not user.primary_family_id:
            changes["primary_family_id"] = stored.family_id
        self.users.users[user.id] = user.model_copy(update=changes)
        return RedemptionOutcome.APPLIED


class InMemoryListRepository(ListRepository):
    def __init__(self) -> None:
        self.lists: Dict[str, ListRecord] = {}
        self.items: Dict[Tuple[str, str], ListItem] = {}

    def create_list(self, record: ListRecord) -> ListRecord:
        self.lists[record.id] = record
        return record

    def find_list(self, list_id: str) -> Optional[ListRecord]:
        return self.lists.get(list_id)

    def list_family_lists(self, family_id: str) -> List[ListRecord]:
        return [record for record in self.lists.values() if record.family_id == family_id]

    def update_list(self, record: ListRecord) -> ListRecord:
        self.lists[record.id] = record
        return record

    def delete_list(self, list_id: str) -> None:
        self.lists.pop(list_id, None)
        for key in [key for key in self.items if key[0] == list_id]:
            del self.items[key]

    def add_item(self, item: ListItem) -> ListItem:
        self.items[(item.list_id, item.id)] = item
        return item

    def find_item(self, list_id: str, item_id: str) -> Optional[ListItem]:
        return self.items.get((list_id, item_id))

    def update_item(self, item: ListItem) -> ListItem:
        self.items[(item.list_id, item.id)] = item
        return item

    def delete_item(self, list_id: str, item_id: str) -> None:
        self.items.pop((list_id, item_id), None)

    def list_items(self, list_id: str) -> List[ListItem]:
        return [item for (owner, _), item in self.items.items() if owner == list_id]

    def count_items(self, list_id: str) -> int:
        return len(self.list_items(list_id))


class InMemoryIdentityStore(IdentityStore):
    def __init__(self) -> None:
        self.identities: Dict[str, AuthIdentity] = {}
        self.reset_tokens: Dict[str, Tuple[str, datetime]] = {}

    def create_identity(self, identity: AuthIdentity) -> AuthIdentity:
        self.identities[identity.uid] = identity
        return identity

    def find_identity(self, uid: str) -> Optional[AuthIdentity]:
        return self.identities.get(uid)

    def find_identity_by_email(self, email: str) -> Optional[AuthIdentity]:
        for identity in self.identities.values():
            if identity.email == email:
                return identity
        return None

    def delete_identity(self, uid: str) -> None:
        self.identities.pop(uid, None)

    def update_password_hash(self, uid: str, password_hash: str) -> None:
        identity = self.identities[uid]
        self.identities[uid] = identity.model_copy(update={"password_hash": password_hash})

    def store_reset_token(self, uid: str, token_hash: str, expires_at: datetime) -> None:
        self.reset_tokens[token_hash] = (uid, expires_at)

    def consume_reset_token(self, token_hash: str, now: datetime) -> Optional[str]:
        entry = self.reset_tokens.pop(token_hash, None)
        if entry is None or entry[1] <= now:
            return None
        return entry[0]


class InMemoryPlanStore:
    def __init__(self) -> None:
        self.plans: Dict[str, PlanDefinition] = {}

    def upsert_plan(self, plan: PlanDefinition) -> PlanDefinition:
        self.plans[plan.id] = plan
        return plan


class RecordingAuditLogger(AuditLogger):
    def __init__(self) -> None:
        self.events: List[FamilyAuditEvent] = []

    def log(self, event: FamilyAuditEvent) -> None:
        self.events.append(event)


class RecordingResetNotifier(PasswordResetNotifier):
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, datetime]] = []

    def send_reset_token(self, email: str, token: str, expires_at: datetime) -> None:
        self.sent.append((email, token, expires_at))


def make_member(users: InMemoryUserRepository, user_id: str, *, email: Optional[str] = None) -> UserAccount:
    """Store a member account that belongs to no family yet."""

    return users.create_user(
        UserAccount(
            id=user_id,
            email=email or f"{user_id}@example.com",
            display_name=user_id.title(),
            locale=Locale.EN,
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
        )
    )

