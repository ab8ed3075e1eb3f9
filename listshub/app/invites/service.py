"""Invite lifecycle: minting, lookup, redemption and revocation."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol

from ..accounts.models import UserAccount
from ..clock import Clock, current_time
from ..entitlements import is_unlimited
from ..errors import ConcurrentModificationError, StateConflictError
from ..families.models import Family, FamilyAuditAction, FamilyAuditEvent
from ..families.service import AuditLogger, FamilyRepository, UserRepository
from .codes import generate_invite_code, generate_invite_token, normalize_invite_code
from .models import FamilyInvite, InviteRedemption, InviteStatus, RedemptionOutcome

logger = logging.getLogger("invites")

DEFAULT_INVITE_TTL_DAYS = 7
DEFAULT_CODE_MAX_RETRIES = 10
# Seats on unlimited plans never run out; invites still need a finite cap.
UNLIMITED_PLAN_INVITE_USES = 50


class InviteRepository(Protocol):
    """Persistence for invites plus the atomic redemption write."""

    def create_invite(self, invite: FamilyInvite) -> FamilyInvite:
        ...

    def get_invite(self, family_id: str, invite_id: str) -> Optional[FamilyInvite]:
        ...

    def find_by_token(self, token: str) -> Optional[FamilyInvite]:
        ...

    def find_by_code(self, code: str, family_id: Optional[str] = None) -> List[FamilyInvite]:
        ...

    def list_family_invites(self, family_id: str) -> List[FamilyInvite]:
        ...

    def pending_code_exists(self, family_id: str, code: str) -> bool:
        ...

    def mark_revoked(self, family_id: str, invite_id: str, revoked_at: datetime) -> bool:
        """Flip a pending invite to revoked. Returns False if it was not pending."""
        ...

    def apply_redemption(self, redemption: InviteRedemption) -> RedemptionOutcome:
        """Apply every write of a redemption atomically or none of them.

        The invite update is conditioned on ``used_count`` still being
        ``redemption.expected_used_count``. The family owner's ``seats.used``
        is incremented only while a seat is free.
        """
        ...


def _new_invite_id() -> str:
    return uuid.uuid4().hex


def validate_invite(invite: FamilyInvite, now: datetime) -> None:
    """Raise :class:`StateConflictError` unless ``invite`` can be redeemed at ``now``."""

    if invite.status == InviteStatus.REVOKED:
        raise StateConflictError("Invite has been revoked")
    if invite.status == InviteStatus.ACCEPTED or invite.used_count >= invite.max_uses:
        raise StateConflictError("Invite max uses reached")
    if invite.status == InviteStatus.EXPIRED or invite.is_expired(now):
        raise StateConflictError("Invite has expired")


def redemption_error(outcome: RedemptionOutcome) -> Optional[StateConflictError]:
    if outcome == RedemptionOutcome.INVITE_CHANGED:
        return ConcurrentModificationError("Invite was modified by another request, please retry")
    if outcome == RedemptionOutcome.SEATS_EXHAUSTED:
        return StateConflictError("No seats available on the current plan")
    return None


@dataclass
class InviteService:
    """Coordinates invite persistence with family seat accounting."""

    invites: InviteRepository
    families: FamilyRepository
    users: UserRepository
    audit_logger: AuditLogger
    clock: Optional[Clock] = None
    code_generator: Callable[[], str] = field(default=generate_invite_code)
    token_generator: Callable[[], str] = field(default=generate_invite_token)
    id_generator: Callable[[], str] = field(default=_new_invite_id)
    code_max_retries: int = DEFAULT_CODE_MAX_RETRIES
    default_ttl_days: int = DEFAULT_INVITE_TTL_DAYS

    def create_invite(
        self,
        family_id: str,
        requester_id: str,
        *,
        expires_in_days: Optional[int] = None,
    ) -> FamilyInvite:
        ttl_days = self.default_ttl_days if expires_in_days is None else expires_in_days
        if ttl_days < 1:
            raise ValueError("expires_in_days must be at least 1")

        family = self.families.get_family(family_id)
        if family.owner_id != requester_id:
            raise PermissionError("Only the family owner may create invites")
        requester = self.users.get_user(requester_id)
        max_uses = self._available_seats(requester)
        if max_uses <= 0:
            raise StateConflictError("No seats available on the current plan")

        now = current_time(self.clock)
        invite = FamilyInvite(
            id=self.id_generator(),
            family_id=family.id,
            family_name=family.name,
            created_by=requester_id,
            created_at=now,
            expires_at=now + timedelta(days=ttl_days),
            token=self.token_generator(),
            code=self._generate_unique_code(family.id),
            status=InviteStatus.PENDING,
            max_uses=max_uses,
        )
        stored = self.invites.create_invite(invite)
        self._audit(
            stored,
            requester_id,
            requester_id,
            FamilyAuditAction.INVITE_CREATED,
            now,
            metadata={"max_uses": str(max_uses)},
        )
        logger.info("Created invite %s for family %s with %d uses", stored.id, family.id, max_uses)
        return stored

    def get_invite(self, family_id: str, invite_id: str) -> FamilyInvite:
        invite = self.invites.get_invite(family_id, invite_id)
        if invite is None:
            raise LookupError("Invite not found")
        return invite

    def get_invite_by_token(self, token: str) -> FamilyInvite:
        invite = self.invites.find_by_token(token) if token else None
        if invite is None:
            raise LookupError("Invite not found")
        return invite

    def get_invite_by_code(self, code: str, family_id: Optional[str] = None) -> FamilyInvite:
        """Case-insensitive code lookup. Pending invites win over historical ones."""

        normalized = normalize_invite_code(code or "")
        if not normalized:
            raise ValueError("Invite code is required")
        matches = self.invites.find_by_code(normalized, family_id)
        if not matches:
            raise LookupError("Invite not found")
        pending = [invite for invite in matches if invite.status == InviteStatus.PENDING]
        candidates = pending or matches
        return max(candidates, key=lambda invite: invite.created_at)

    def list_family_invites(self, family_id: str, requester_id: str) -> List[FamilyInvite]:
        family = self.families.get_family(family_id)
        if family.owner_id != requester_id:
            requester = self.users.find_user(requester_id)
            if requester is None or not requester.is_master:
                raise PermissionError("Only the family owner may view invites")
        invites = self.invites.list_family_invites(family_id)
        return sorted(invites, key=lambda invite: invite.created_at, reverse=True)

    def redeem_invite(self, family_id: str, invite_id: str, user_id: str) -> FamilyInvite:
        return self._redeem(self.get_invite(family_id, invite_id), user_id)

    def redeem_invite_by_token(self, token: str, user_id: str) -> FamilyInvite:
        return self._redeem(self.get_invite_by_token(token), user_id)

    def redeem_invite_by_code(
        self,
        code: str,
        user_id: str,
        *,
        family_id: Optional[str] = None,
    ) -> FamilyInvite:
        return self._redeem(self.get_invite_by_code(code, family_id), user_id)

    def prepare_redemption(self, invite: FamilyInvite, user: UserAccount) -> InviteRedemption:
        """Validate ``invite`` for ``user`` and build the write that redeems it."""

        now = current_time(self.clock)
        validate_invite(invite, now)
        family = self.families.get_family(invite.family_id)
        self._check_joinable(family, user.id)
        return InviteRedemption(
            invite=invite,
            user_id=user.id,
            owner_id=family.owner_id,
            redeemed_at=now,
            display_name=user.display_name or None,
            email=user.email,
        )

    def apply_redemption(self, redemption: InviteRedemption) -> FamilyInvite:
        outcome = self.invites.apply_redemption(redemption)
        error = redemption_error(outcome)
        if error is not None:
            logger.info(
                "Redemption of invite %s by %s rejected: %s",
                redemption.invite.id,
                redemption.user_id,
                outcome.value,
            )
            raise error

        invite = redemption.invite
        self._audit(
            invite,
            redemption.user_id,
            redemption.user_id,
            FamilyAuditAction.INVITE_REDEEMED,
            redemption.redeemed_at,
            metadata={"used_count": str(redemption.next_used_count)},
        )
        return invite.model_copy(
            update={
                "used_count": redemption.next_used_count,
                "accepted_by": [*invite.accepted_by, redemption.user_id],
                "status": redemption.next_status,
            }
        )

    def revoke_invite(self, family_id: str, invite_id: str, requester_id: str) -> FamilyInvite:
        """Stop further redemptions. Members who already joined stay in the family."""

        family = self.families.get_family(family_id)
        if family.owner_id != requester_id:
            raise PermissionError("Only the family owner may revoke invites")
        invite = self.get_invite(family_id, invite_id)
        if invite.status == InviteStatus.REVOKED:
            return invite
        if invite.status == InviteStatus.ACCEPTED:
            raise StateConflictError("Accepted invites cannot be revoked")

        now = current_time(self.clock)
        if not self.invites.mark_revoked(family_id, invite_id, now):
            raise ConcurrentModificationError("Invite was modified by another request, please retry")
        self._audit(invite, requester_id, requester_id, FamilyAuditAction.INVITE_REVOKED, now)
        return invite.model_copy(update={"status": InviteStatus.REVOKED, "revoked_at": now})

    def _redeem(self, invite: FamilyInvite, user_id: str) -> FamilyInvite:
        user = self.users.get_user(user_id)
        return self.apply_redemption(self.prepare_redemption(invite, user))

    def _check_joinable(self, family: Family, user_id: str) -> None:
        if family.is_active_member(user_id):
            raise StateConflictError("User is already an active member of this family")
        if user_id in family.blocked_members:
            raise PermissionError("User is blocked from this family")

    def _available_seats(self, requester: UserAccount) -> int:
        billing = requester.billing
        if billing is None:
            raise ValueError("Family owner has no billing information")
        if is_unlimited(billing.seats.total):
            return UNLIMITED_PLAN_INVITE_USES
        return max(0, int(billing.seats.total) - billing.seats.used)

    def _generate_unique_code(self, family_id: str) -> str:
        for _ in range(self.code_max_retries + 1):
            candidate = normalize_invite_code(self.code_generator())
            if not self.invites.pending_code_exists(family_id, candidate):
                return candidate
            logger.debug("Invite code collision in family %s, retrying", family_id)
        raise StateConflictError("Could not generate a unique invite code")

    def _audit(
        self,
        invite: FamilyInvite,
        actor_id: str,
        subject_id: str,
        action: FamilyAuditAction,
        timestamp: datetime,
        *,
        metadata: Optional[dict] = None,
    ) -> None:
        self.audit_logger.log(
            FamilyAuditEvent(
                family_id=invite.family_id,
                actor_id=actor_id,
                subject_id=subject_id,
                action=action,
                timestamp=timestamp,
                metadata={"invite_id": invite.id, **(metadata or {})},
            )
        )


__all__ = [
    "InviteRepository",
    "InviteService",
    "redemption_error",
    "validate_invite",
]
