"""Pydantic schemas for user and authentication operations."""

import re
from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field

from keystone.core.constants import (
    MAX_API_KEY_EXPIRY_DAYS,
    MAX_API_KEY_NAME_LENGTH,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_PASSWORD_LENGTH,
    MAX_PHONE_INPUT_LENGTH,
    MIN_API_KEY_EXPIRY_DAYS,
    MIN_API_KEY_NAME_LENGTH,
    MIN_DISPLAY_NAME_LENGTH,
    MIN_PASSWORD_LENGTH,
    MIN_PHONE_INPUT_LENGTH,
)


# ============================================================
# Passwords
# ============================================================

# Character classes a password must contain, by the name used in messages
_REQUIRED_CLASSES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("uppercase letter", re.compile(r"[A-Z]")),
    ("lowercase letter", re.compile(r"[a-z]")),
    ("digit", re.compile(r"\d")),
    ("special character", re.compile(r"[^A-Za-z0-9\s]")),
)


def validate_password_complexity(password: str) -> str:
    """Reject passwords lacking any required character class.

    Whitespace does not count as a special character. The error names
    every missing class at once.
    """
    missing = [label for label, pattern in _REQUIRED_CLASSES if not pattern.search(password)]
    if len(missing) == 1:
        raise ValueError(f"Password must contain at least one {missing[0]}")
    if missing:
        raise ValueError(f"Password must contain at least one: {', '.join(missing)}")
    return password


Password = Annotated[
    str,
    Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH),
    AfterValidator(validate_password_complexity),
]


# ============================================================
# User Schemas
# ============================================================


class UserUpdate(BaseModel):
    """Schema for an administrative partial update."""

    name: str | None = Field(
        None, min_length=MIN_DISPLAY_NAME_LENGTH, max_length=MAX_DISPLAY_NAME_LENGTH
    )
    phone: str | None = Field(
        None, min_length=MIN_PHONE_INPUT_LENGTH, max_length=MAX_PHONE_INPUT_LENGTH
    )
    is_active: bool | None = None
    email_verified: bool | None = None


class UserPasswordUpdate(BaseModel):
    """Schema for changing one's own password."""

    current_password: str
    new_password: Password


class UserResponse(BaseModel):
    """Schema for user response data. Never includes the password hash."""

    id: UUID
    email: str
    name: str | None = None
    phone: str | None = None
    is_active: bool
    email_verified: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(UserResponse):
    """The caller's own account plus its resolved roles and permissions."""

    roles: list[str]
    permissions: list[str]


# ============================================================
# Authentication Schemas
# ============================================================


class RegisterRequest(BaseModel):
    """Schema for user registration."""

    email: EmailStr
    password: Password
    name: str | None = Field(
        None, min_length=MIN_DISPLAY_NAME_LENGTH, max_length=MAX_DISPLAY_NAME_LENGTH
    )
    phone: str | None = Field(
        None, min_length=MIN_PHONE_INPUT_LENGTH, max_length=MAX_PHONE_INPUT_LENGTH
    )


class LoginRequest(BaseModel):
    """Schema for email/password login."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Schema for authentication token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token expiration in seconds")


class RefreshTokenRequest(BaseModel):
    """Schema for refreshing the token pair."""

    refresh_token: str


class RegisterResponse(TokenResponse):
    """Schema for registration response."""

    user: UserResponse


# ============================================================
# API Key Schemas
# ============================================================


class ApiKeyCreate(BaseModel):
    """Schema for issuing an API key."""

    name: str = Field(
        ..., min_length=MIN_API_KEY_NAME_LENGTH, max_length=MAX_API_KEY_NAME_LENGTH
    )
    expires_in_days: int | None = Field(
        None, ge=MIN_API_KEY_EXPIRY_DAYS, le=MAX_API_KEY_EXPIRY_DAYS
    )


class ApiKeyResponse(BaseModel):
    """An issued key as listed later. The secret itself is not included."""

    id: UUID
    name: str
    is_active: bool
    expires_at: datetime | None = None
    last_used_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreated(BaseModel):
    """Returned exactly once, at issue time; carries the secret."""

    id: UUID
    key: str
    name: str
    expires_at: datetime | None = None
