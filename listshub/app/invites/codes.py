"""Random invite tokens and short human-typable codes."""
from __future__ import annotations

import secrets
import uuid

# 0, O, 1, I and L are left out so codes survive being read aloud or retyped.
INVITE_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 6


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def generate_invite_token() -> str:
    return str(uuid.uuid4())


def normalize_invite_code(code: str) -> str:
    return code.strip().upper()


def is_valid_invite_code(code: str) -> bool:
    return len(code) == INVITE_CODE_LENGTH and all(char in INVITE_CODE_ALPHABET for char in code)
