"""Runtime configuration helpers."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class AppConfig:
    """Settings for the API process and operator tooling."""

    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_connect_timeout: int
    jwt_secret_key: str
    jwt_algorithm: str
    jwt_exp_minutes: int
    session_cookie_name: str
    session_cookie_secure: bool
    invite_ttl_days: int
    invite_code_max_retries: int
    password_reset_token_ttl_minutes: int

    @property
    def db_params(self) -> Dict[str, Any]:
        return dict(
            host=self.db_host,
            port=self.db_port,
            dbname=self.db_name,
            user=self.db_user,
            password=self.db_password,
            connect_timeout=self.db_connect_timeout,
        )


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _parse_connect_timeout(raw_value: Optional[str]) -> int:
    if raw_value is None or raw_value == "":
        return 5
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def load_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load :class:`AppConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    invite_ttl_days = _to_int(env_mapping.get("INVITE_TTL_DAYS"), default=7)
    if invite_ttl_days < 1:
        raise ValueError("INVITE_TTL_DAYS must be at least 1")

    return AppConfig(
        db_host=env_mapping.get("DB_HOST", "127.0.0.1"),
        db_port=_to_int(env_mapping.get("DB_PORT"), default=5432),
        db_name=env_mapping.get("DB_NAME", "listshub"),
        db_user=env_mapping.get("DB_USER", "listshub"),
        db_password=env_mapping.get("DB_PASSWORD", "listshub"),
        db_connect_timeout=_parse_connect_timeout(env_mapping.get("DB_CONNECT_TIMEOUT")),
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY", "dev-secret-change-me"),
        jwt_algorithm="HS256",
        jwt_exp_minutes=_to_int(env_mapping.get("JWT_EXP_MINUTES"), default=60 * 24 * 7),
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME", "session"),
        session_cookie_secure=_to_bool(env_mapping.get("SESSION_COOKIE_SECURE"), default=False),
        invite_ttl_days=invite_ttl_days,
        invite_code_max_retries=max(0, _to_int(env_mapping.get("INVITE_CODE_MAX_RETRIES"), default=10)),
        password_reset_token_ttl_minutes=_to_int(
            env_mapping.get("PASSWORD_RESET_TOKEN_TTL_MINUTES"), default=60
        ),
    )
