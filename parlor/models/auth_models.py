"""
Authentication Pipeline Models.

Pydantic models and enumerations for the contracts between
``AuthService``, ``SessionManager``, the login throttle, the credential
store and the activity log.

Every auth operation returns a structured, inspectable ``AuthResult``
rather than raising for expected failures.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from parlor.models.enums import ActivityAction
from parlor.models.user import UserProfile
from parlor.utils.time_utils import ensure_utc


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Exhaustive enumeration of authentication error categories."""

    INVALID_INPUT = "invalid_input"
    INVALID_CREDENTIALS = "invalid_credentials"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    ACCOUNT_SUSPENDED = "account_suspended"
    USER_NOT_FOUND = "user_not_found"
    PASSWORD_REUSED = "password_reused"
    WEAK_PASSWORD = "weak_password"
    FORBIDDEN = "forbidden"


class InvalidInputError(ValueError):
    """Raised by the credential store for unusable input (empty password)."""


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationResult(BaseModel):
    """Result of a single field validation check."""

    is_valid: bool
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Unified auth response
# ---------------------------------------------------------------------------

class AuthResult(BaseModel):
    """Unified response for login, password change and admin reset.

    Attributes
    ----------
    success:
        ``True`` when the operation completed without error.
    error_code:
        Structured error category (``None`` on success).
    error_message:
        Human-readable error description (``None`` on success).
    user:
        The authenticated user, credential stripped.  Only set by
        ``login``.
    """

    success: bool
    error_code: Optional[AuthErrorCode] = None
    error_message: Optional[str] = None
    user: Optional[UserProfile] = None

    @classmethod
    def fail(cls, code: AuthErrorCode, message: str) -> "AuthResult":
        return cls(success=False, error_code=code, error_message=message)


# ---------------------------------------------------------------------------
# Persisted auth state
# ---------------------------------------------------------------------------

class LoginAttempt(BaseModel):
    """One login attempt for a normalised identity."""

    identity: str
    timestamp: datetime
    successful: bool

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)  # type: ignore[return-value]


class Session(BaseModel):
    """The single active session."""

    user_id: str
    token: str
    created_at: datetime
    expires_at: datetime
    last_activity: datetime
    network_address: str
    client_descriptor: str

    @field_validator("created_at", "expires_at", "last_activity")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)  # type: ignore[return-value]

    def is_valid_at(self, now: datetime) -> bool:
        return now <= self.expires_at


class PasswordHistoryEntry(BaseModel):
    """A previously used credential hash, kept only to block reuse."""

    user_id: str
    password: str
    changed_at: datetime


class ActivityLogEntry(BaseModel):
    """One line of the security audit trail."""

    timestamp: datetime
    user_id: str
    action: ActivityAction
    detail: str = ""
    network_address: str = "unknown"
    client_descriptor: str = "unknown"


class PasswordStrength(BaseModel):
    """Advisory strength score used by password forms."""

    score: int = Field(ge=0, le=4)
    label: str
