"""
Data Models Package.

Re-exports all Pydantic models::

    from parlor.models import Product, Sale, User, UserRole, ShimResult
"""

from __future__ import annotations

from parlor.models.assignment import Assignment
from parlor.models.auth_models import (
    ActivityLogEntry,
    AuthErrorCode,
    AuthResult,
    InvalidInputError,
    LoginAttempt,
    PasswordHistoryEntry,
    PasswordStrength,
    Session,
    ValidationResult,
)
from parlor.models.enums import (
    ActivityAction,
    AssignmentType,
    Durability,
    SyncOperation,
    SyncStatus,
    UserRole,
    UserStatus,
)
from parlor.models.inventory import InventoryMovement
from parlor.models.product import Product
from parlor.models.sale import Sale
from parlor.models.service_models import ServiceResult
from parlor.models.sync_models import ShimResult
from parlor.models.user import User, UserProfile

__all__ = [
    "ActivityAction",
    "ActivityLogEntry",
    "Assignment",
    "AssignmentType",
    "AuthErrorCode",
    "AuthResult",
    "Durability",
    "InvalidInputError",
    "InventoryMovement",
    "LoginAttempt",
    "PasswordHistoryEntry",
    "PasswordStrength",
    "Product",
    "Sale",
    "ServiceResult",
    "Session",
    "ShimResult",
    "SyncOperation",
    "SyncStatus",
    "User",
    "UserProfile",
    "UserRole",
    "UserStatus",
    "ValidationResult",
]
