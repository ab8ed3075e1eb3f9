"""Application wiring for the family, invite and invite-signup services."""
from __future__ import annotations

import logging
from functools import lru_cache

from ...config import load_config
from ..accounts.repository import PostgresIdentityStore, PostgresUserRepository
from ..families.models import FamilyAuditEvent
from ..families.repository import PostgresFamilyRepository
from ..families.service import AuditLogger, MembershipService
from ..invites.repository import PostgresInviteRepository
from ..invites.service import InviteService
from ..invites.signup import InviteSignupService

logger = logging.getLogger("families")


class LoggingAuditLogger(AuditLogger):
    """Audit logger forwarding membership events to the application logger."""

    def log(self, event: FamilyAuditEvent) -> None:
        logger.info(
            "Family event %s family=%s actor=%s subject=%s role=%s->%s metadata=%s",
            event.action.value,
            event.family_id,
            event.actor_id,
            event.subject_id,
            event.role_before.value if event.role_before else None,
            event.role_after.value if event.role_after else None,
            event.metadata,
        )


@lru_cache(maxsize=1)
def get_membership_service() -> MembershipService:
    return MembershipService(
        families=PostgresFamilyRepository(),
        users=PostgresUserRepository(),
        audit_logger=LoggingAuditLogger(),
    )


@lru_cache(maxsize=1)
def get_invite_service() -> InviteService:
    config = load_config()
    return InviteService(
        invites=PostgresInviteRepository(),
        families=PostgresFamilyRepository(),
        users=PostgresUserRepository(),
        audit_logger=LoggingAuditLogger(),
        code_max_retries=config.invite_code_max_retries,
        default_ttl_days=config.invite_ttl_days,
    )


@lru_cache(maxsize=1)
def get_invite_signup_service() -> InviteSignupService:
    return InviteSignupService(
        invites=get_invite_service(),
        identities=PostgresIdentityStore(),
        users=PostgresUserRepository(),
    )


__all__ = [
    "LoggingAuditLogger",
    "get_invite_service",
    "get_invite_signup_service",
    "get_membership_service",
]
