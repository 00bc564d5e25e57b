"""
Shared Enumerations for Parlor Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents, so stored
JSON such as ``"role": "admin"`` round-trips without conversion.
"""

from __future__ import annotations

from enum import StrEnum


class UserRole(StrEnum):
    """Valid user roles.  ``STOREKEEPER`` is the stock manager."""

    ADMIN = "admin"
    STOREKEEPER = "storekeeper"
    ATTENDANT = "attendant"


class UserStatus(StrEnum):
    """Account lifecycle.  Only ``SUSPENDED`` blocks login."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    FROZEN = "frozen"


class ActivityAction(StrEnum):
    """Kinds of security-relevant events written to the activity log."""

    SESSION_CREATE = "SESSION_CREATE"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    ADMIN_RESET_PASSWORD = "ADMIN_RESET_PASSWORD"
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"
    USER_STATUS_CHANGE = "USER_STATUS_CHANGE"
    USER_MIGRATION = "USER_MIGRATION"


class AssignmentType(StrEnum):
    """Unit in which stock was handed to an attendant."""

    CRATES = "crates"
    BOTTLES = "bottles"


class Durability(StrEnum):
    """Where a data-shim write actually landed."""

    REMOTE = "remote"
    LOCAL_FALLBACK = "local_fallback"


class SyncOperation(StrEnum):
    """Operations recorded in the ``sync_queue`` outbox."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class SyncStatus(StrEnum):
    """Lifecycle of a ``sync_queue`` row."""

    PENDING = "pending"
    SYNCED = "synced"
    PERMANENTLY_FAILED = "permanently_failed"
