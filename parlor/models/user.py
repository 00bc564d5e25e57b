"""
User Model.

``UserProfile`` is what callers receive; ``User`` adds the stored
credential and never leaves the repository/auth layers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from parlor.models.enums import UserRole, UserStatus
from parlor.utils.time_utils import utcnow


class UserProfile(BaseModel):
    """A user account without its credential."""

    id: str
    email: str
    name: str
    role: UserRole
    created_at: datetime = Field(default_factory=utcnow)
    status: UserStatus = UserStatus.ACTIVE

    model_config = {"from_attributes": True}

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class User(UserProfile):
    """A stored user account.

    ``password`` holds the bcrypt hash.  ``None`` (or an empty string)
    means the account is in bootstrap state: the first password
    presented at login becomes the credential.
    """

    password: Optional[str] = None

    @property
    def has_credential(self) -> bool:
        return bool(self.password)

    def to_profile(self) -> UserProfile:
        """Strip the credential."""
        return UserProfile.model_validate(self.model_dump(exclude={"password"}))
