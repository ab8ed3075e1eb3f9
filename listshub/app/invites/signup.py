"""Privileged signup that creates a member account straight from an invite."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

from ..accounts.auth import (
    AuthIdentity,
    IdentityStore,
    hash_password,
    new_uid,
    normalize_email,
    validate_display_name,
    validate_password,
)
from ..accounts.models import Locale, UserAccount
from ..clock import Clock, current_time
from ..entitlements import UserRole
from ..errors import StateConflictError
from ..families.service import UserRepository
from .service import InviteService, validate_invite

logger = logging.getLogger("invites")


@dataclass
class InviteSignupService:
    """Creates the identity, the member document and the redemption in one call.

    Every step after the identity exists is compensated on failure: the user
    document and the identity are deleted again before the error is re-raised.
    """

    invites: InviteService
    identities: IdentityStore
    users: UserRepository
    clock: Optional[Clock] = None
    uid_generator: Callable[[], str] = field(default=new_uid)

    def create_invite_user(
        self,
        email: str,
        password: str,
        display_name: str,
        invite_token: str,
        *,
        locale: Locale = Locale.PT,
    ) -> Dict[str, Union[bool, str]]:
        normalized_email = normalize_email(email)
        validate_password(password)
        name = validate_display_name(display_name)
        if not (invite_token or "").strip():
            raise ValueError("Invite token is required")

        invite = self.invites.get_invite_by_token(invite_token.strip())
        now = current_time(self.clock)
        validate_invite(invite, now)
        if self.identities.find_identity_by_email(normalized_email) is not None:
            raise StateConflictError("An account with this email already exists")

        identity = self.identities.create_identity(
            AuthIdentity(
                uid=self.uid_generator(),
                email=normalized_email,
                password_hash=hash_password(password),
                created_at=now,
            )
        )
        user_created = False
        try:
            user = self.users.create_user(
                UserAccount(
                    id=identity.uid,
                    email=normalized_email,
                    display_name=name,
                    locale=locale,
                    role=UserRole.MEMBER,
                    created_at=now,
                    updated_at=now,
                )
            )
            user_created = True
            self.invites.apply_redemption(self.invites.prepare_redemption(invite, user))
        except Exception:
            logger.exception("Invite signup for %s failed, rolling back", identity.uid)
            self._compensate(identity.uid, user_created)
            raise

        logger.info("Created member %s from invite %s", identity.uid, invite.id)
        return {"success": True, "uid": identity.uid}

    def _compensate(self, uid: str, user_created: bool) -> None:
        if user_created:
            try:
                self.users.delete_user(uid)
            except Exception:
                logger.exception("Failed to delete user document %s during rollback", uid)
        try:
            self.identities.delete_identity(uid)
        except Exception:
            logger.exception("Failed to delete auth identity %s during rollback", uid)
