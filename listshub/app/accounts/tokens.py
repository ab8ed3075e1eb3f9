"""Signed session tokens carried in the session cookie."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

DEFAULT_ALGORITHM = "HS256"


def create_access_token(
    *,
    subject: str,
    secret_key: str,
    expires_delta: timedelta,
    algorithm: str = DEFAULT_ALGORITHM,
    now: Optional[datetime] = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": issued_at, "exp": issued_at + expires_delta}
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret_key: str,
    algorithm: str = DEFAULT_ALGORITHM,
) -> Optional[str]:
    """Return the token subject, or ``None`` for invalid or expired tokens."""

    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return str(subject)
