from __future__ import annotations

import pytest

from listshub.config import load_config


def test_defaults_without_environment() -> None:
    config = load_config({})

    assert config.db_port == 5432
    assert config.db_connect_timeout == 5
    assert config.invite_ttl_days == 7
    assert config.invite_code_max_retries == 10
    assert config.password_reset_token_ttl_minutes == 60
    assert config.session_cookie_secure is False
    assert config.db_params["dbname"] == "listshub"


def test_environment_overrides() -> None:
    config = load_config(
        {
            "DB_PORT": "6543",
            "DB_CONNECT_TIMEOUT": "2.5",
            "INVITE_TTL_DAYS": "14",
            "INVITE_CODE_MAX_RETRIES": "-3",
            "SESSION_COOKIE_SECURE": "yes",
            "SESSION_COOKIE_NAME": "lh_session",
        }
    )

    assert config.db_port == 6543
    assert config.db_connect_timeout == 3
    assert config.invite_ttl_days == 14
    assert config.invite_code_max_retries == 0
    assert config.session_cookie_secure is True
    assert config.session_cookie_name == "lh_session"


@pytest.mark.parametrize(
    "env",
    [
        {"DB_PORT": "not-a-port"},
        {"DB_CONNECT_TIMEOUT": "-1"},
        {"DB_CONNECT_TIMEOUT": "soon"},
        {"INVITE_TTL_DAYS": "0"},
    ],
)
def test_invalid_values_are_rejected(env) -> None:
    with pytest.raises(ValueError):
        load_config(env)
