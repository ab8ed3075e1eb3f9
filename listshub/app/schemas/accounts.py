"""API schemas for authentication endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..accounts.models import Locale


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    display_name: str = Field(alias="displayName")
    locale: Locale = Locale.PT
    family_name: Optional[str] = Field(alias="familyName", default=None)

    model_config = ConfigDict(populate_by_name=True)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetResponse(BaseModel):
    message: str
    expires_at: Optional[datetime] = Field(alias="expiresAt", default=None)

    model_config = ConfigDict(populate_by_name=True)


class PasswordResetConfirm(BaseModel):
    token: str
    password: str
