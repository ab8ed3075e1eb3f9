"""Email/password identities, sign-in and password resets."""
from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, Tuple

from passlib.hash import bcrypt
from pydantic import BaseModel, ConfigDict, EmailStr, TypeAdapter, ValidationError

from ..clock import Clock, current_time
from ..errors import StateConflictError
from .models import Locale, UserAccount, revise_user

logger = logging.getLogger("accounts")

MIN_PASSWORD_LENGTH = 8
MAX_DISPLAY_NAME_LENGTH = 80
_EMAIL_ADAPTER = TypeAdapter(EmailStr)


class InvalidCredentialsError(PermissionError):
    """Raised when an email/password pair does not match an identity."""


class AuthIdentity(BaseModel):
    uid: str
    email: str
    password_hash: str
    created_at: datetime

    model_config = ConfigDict(frozen=True)


class IdentityStore(Protocol):
    """Persistence for credentials, kept apart from the user document."""

    def create_identity(self, identity: AuthIdentity) -> AuthIdentity:
        ...

    def find_identity(self, uid: str) -> Optional[AuthIdentity]:
        ...

    def find_identity_by_email(self, email: str) -> Optional[AuthIdentity]:
        ...

    def delete_identity(self, uid: str) -> None:
        ...

    def update_password_hash(self, uid: str, password_hash: str) -> None:
        ...

    def store_reset_token(self, uid: str, token_hash: str, expires_at: datetime) -> None:
        ...

    def consume_reset_token(self, token_hash: str, now: datetime) -> Optional[str]:
        """Delete a live reset token and return its uid, or ``None``."""
        ...


class PasswordResetNotifier(Protocol):
    def send_reset_token(self, email: str, token: str, expires_at: datetime) -> None:
        ...


class TitularProvisioner(Protocol):
    def provision_titular(
        self,
        user_id: str,
        email: str,
        display_name: str,
        *,
        locale: Locale = Locale.PT,
        family_name: Optional[str] = None,
    ) -> Tuple[UserAccount, object]:
        ...


class SignInUsers(Protocol):
    def get_user(self, user_id: str) -> UserAccount:
        ...

    def update_user(self, user: UserAccount, fields) -> UserAccount:
        ...


def normalize_email(email: str) -> str:
    try:
        validated = _EMAIL_ADAPTER.validate_python((email or "").strip())
    except ValidationError as exc:
        raise ValueError("A valid email address is required") from exc
    return validated.lower()


def validate_password(password: str) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def validate_display_name(display_name: str) -> str:
    cleaned = (display_name or "").strip()
    if not cleaned:
        raise ValueError("Display name is required")
    if len(cleaned) > MAX_DISPLAY_NAME_LENGTH:
        raise ValueError(f"Display name must be at most {MAX_DISPLAY_NAME_LENGTH} characters")
    return cleaned


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        return False


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_uid() -> str:
    return uuid.uuid4().hex


@dataclass
class AuthService:
    """Self-service signup (titular path), sign-in and password resets."""

    identities: IdentityStore
    users: SignInUsers
    provisioner: TitularProvisioner
    reset_notifier: PasswordResetNotifier
    clock: Optional[Clock] = None
    reset_token_ttl: timedelta = timedelta(minutes=60)
    uid_generator: Callable[[], str] = field(default=new_uid)

    def sign_up(
        self,
        email: str,
        password: str,
        display_name: str,
        *,
        locale: Locale = Locale.PT,
        family_name: Optional[str] = None,
    ) -> UserAccount:
        normalized_email = normalize_email(email)
        validate_password(password)
        name = validate_display_name(display_name)
        if self.identities.find_identity_by_email(normalized_email) is not None:
            raise StateConflictError("An account with this email already exists")

        now = current_time(self.clock)
        identity = self.identities.create_identity(
            AuthIdentity(
                uid=self.uid_generator(),
                email=normalized_email,
                password_hash=hash_password(password),
                created_at=now,
            )
        )
        try:
            user, _family = self.provisioner.provision_titular(
                identity.uid,
                normalized_email,
                name,
                locale=locale,
                family_name=family_name,
            )
        except Exception:
            logger.exception("Signup of %s failed after identity creation", identity.uid)
            self.identities.delete_identity(identity.uid)
            raise
        return user

    def sign_in(self, email: str, password: str) -> UserAccount:
        try:
            normalized_email = normalize_email(email)
        except ValueError as exc:
            raise InvalidCredentialsError("Invalid email or password") from exc
        identity = self.identities.find_identity_by_email(normalized_email)
        if identity is None or not verify_password(password, identity.password_hash):
            raise InvalidCredentialsError("Invalid email or password")

        user = self.users.get_user(identity.uid)
        return self.users.update_user(
            *revise_user(user, last_sign_in_at=current_time(self.clock))
        )

    def request_password_reset(self, email: str) -> Optional[datetime]:
        """Issue a reset token if the email is known. Returns its expiry, if issued."""

        try:
            normalized_email = normalize_email(email)
        except ValueError:
            return None
        identity = self.identities.find_identity_by_email(normalized_email)
        if identity is None:
            logger.info("Password reset requested for unknown email")
            return None

        token = secrets.token_urlsafe(32)
        expires_at = current_time(self.clock) + self.reset_token_ttl
        self.identities.store_reset_token(identity.uid, hash_token(token), expires_at)
        self.reset_notifier.send_reset_token(identity.email, token, expires_at)
        return expires_at

    def reset_password(self, token: str, new_password: str) -> None:
        validate_password(new_password)
        uid = self.identities.consume_reset_token(hash_token(token or ""), current_time(self.clock))
        if uid is None:
            raise ValueError("Invalid or expired reset token")
        self.identities.update_password_hash(uid, hash_password(new_password))
        logger.info("Password reset completed for %s", uid)


__all__ = [
    "AuthIdentity",
    "AuthService",
    "IdentityStore",
    "InvalidCredentialsError",
    "PasswordResetNotifier",
    "hash_password",
    "hash_token",
    "normalize_email",
    "validate_display_name",
    "validate_password",
    "verify_password",
]
