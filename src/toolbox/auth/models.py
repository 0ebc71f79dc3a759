"""Data models for local accounts and sessions."""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LocalAccount(BaseModel):
    """
    A row of the ``users`` table.

    Accounts created by the federated flow have a synthesized ``email`` and
    an unusable ``password_placeholder``; they can only sign in through the
    provider. ``(provider, federated_id)`` is unique.

    Attributes:
        id: Primary key
        username: Unique login name (``zalo_<id>`` for federated accounts)
        display_name: Name shown in the UI, refreshed on every login
        avatar_url: Avatar URL, refreshed on every login
        provider: Identity namespace (``zalo`` or ``zalo:restricted``)
        federated_id: Provider user id, or pseudo-id for restricted logins
        role: Authorization role, never changed by the login flow
        credits: Credit balance, never changed by the login flow
        verified: Whether the account is verified
        profile_complete: False when the provider withheld the profile
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    provider: str | None = None
    federated_id: str | None = None
    email: str | None = None
    password_placeholder: str | None = None
    role: str = "user"
    credits: int = 0
    verified: bool = False
    profile_complete: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def public_summary(self) -> dict[str, Any]:
        """Fields that are safe to hand to the browser."""
        return {
            "id": self.id,
            "username": self.username,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
            "role": self.role,
            "profileComplete": self.profile_complete,
        }


class AuthSession(BaseModel):
    """A signed-in session bound to a local account."""

    session_id: str
    account_id: int
    token: str = Field(repr=False)
    expires_at: datetime


class SessionUser(BaseModel):
    """Identity extracted from a verified session cookie."""

    account_id: int
    session_id: str


class AccountSummaryResponse(BaseModel):
    """Response body for ``GET /auth/me``."""

    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    role: str
    credits: int
    profile_complete: bool


class LogoutResponse(BaseModel):
    """Response body for ``POST /auth/logout``."""

    status: str


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ProfileCompletionRequest(BaseModel):
    """
    Request body for ``POST /auth/profile``.

    Lets an account created from a withheld Zalo profile supply the details
    the provider did not return.

    Attributes:
        full_name: Name to display, at least 2 characters once trimmed
        email: Optional contact email; blank means "not provided"
    """

    full_name: str
    email: str | None = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Full name must be at least 2 characters")
        return value

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value
