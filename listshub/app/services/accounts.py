"""Application wiring for authentication."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from functools import lru_cache

from ...config import load_config
from ..accounts.auth import AuthService, PasswordResetNotifier
from ..accounts.repository import PostgresIdentityStore, PostgresUserRepository
from .memberships import get_membership_service

logger = logging.getLogger("accounts")


class LoggingPasswordResetNotifier(PasswordResetNotifier):
    """Records that a reset token was issued. The token itself is never logged."""

    def send_reset_token(self, email: str, token: str, expires_at: datetime) -> None:
        logger.info("Password reset token issued, expires_at=%s", expires_at.isoformat())


@lru_cache(maxsize=1)
def get_user_repository() -> PostgresUserRepository:
    return PostgresUserRepository()


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    config = load_config()
    return AuthService(
        identities=PostgresIdentityStore(),
        users=get_user_repository(),
        provisioner=get_membership_service(),
        reset_notifier=LoggingPasswordResetNotifier(),
        reset_token_ttl=timedelta(minutes=config.password_reset_token_ttl_minutes),
    )


__all__ = ["LoggingPasswordResetNotifier", "get_auth_service", "get_user_repository"]
