"""
User Management Service.

Handles administrative user operations: listing, creation, updates,
deletion and status changes.  Users are authoritative in the local
users bucket; every change is written to the activity log.
"""

from __future__ import annotations

import re
import uuid

from pydantic import ValidationError

from parlor.logger import StructuredLogger
from parlor.models.auth_models import InvalidInputError, ValidationResult
from parlor.models.enums import ActivityAction, UserRole, UserStatus
from parlor.models.service_models import ServiceResult
from parlor.models.user import User, UserProfile
from parlor.repositories.user_repository import UserRepository
from parlor.services.activity_log import ActivityLogService
from parlor.services.base_service import BaseService
from parlor.services.credentials import CredentialStore
from parlor.utils.time_utils import Clock, utcnow

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

# Matches C0 controls (U+0000-U+001F), DEL (U+007F), and C1 controls (U+0080-U+009F).
_CONTROL_CHAR_RE: re.Pattern[str] = re.compile(r"[\x00-\x1f\x7f-\x9f]")

_UPDATABLE_FIELDS: frozenset[str] = frozenset({"name", "email", "role", "status", "password"})


class UserService(BaseService):
    """Service layer for admin user management operations."""

    def __init__(
        self,
        repo: UserRepository,
        credentials: CredentialStore,
        activity_log: ActivityLogService,
        logger: StructuredLogger,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(logger)
        self._repo = repo
        self._credentials = credentials
        self._activity_log = activity_log
        self._clock = clock

    # ==================================================================
    # Validation helpers
    # ==================================================================

    @staticmethod
    def validate_email(email: str) -> ValidationResult:
        """Validate an email address against a simplified RFC 5322 regex."""
        if not email or not email.strip():
            return ValidationResult(
                is_valid=False, error_message="Email address is required."
            )
        if not _EMAIL_RE.match(email.strip()):
            return ValidationResult(
                is_valid=False, error_message="Please enter a valid email address."
            )
        return ValidationResult(is_valid=True)

    @staticmethod
    def validate_name(name: str) -> ValidationResult:
        """Reject empty names and names containing control characters."""
        stripped = (name or "").strip()
        if not stripped:
            return ValidationResult(is_valid=False, error_message="Name is required.")
        if _CONTROL_CHAR_RE.search(stripped):
            return ValidationResult(
                is_valid=False,
                error_message=(
                    "Name contains invalid characters. "
                    "Only printable characters are allowed."
                ),
            )
        return ValidationResult(is_valid=True)

    # ==================================================================
    # Queries
    # ==================================================================

    def list_users(self) -> ServiceResult[list[UserProfile]]:
        """All users, credentials stripped."""
        try:
            profiles = [user.to_profile() for user in self._repo.get_all()]
        except Exception as exc:
            self._logger.error("Failed to fetch users: %s", exc)
            return ServiceResult(
                success=False,
                error=f"Database error fetching users: {exc}",
                status_code=500,
            )
        return ServiceResult(success=True, data=profiles)

    def get_user(self, user_id: str) -> ServiceResult[UserProfile]:
        user = self._repo.get_by_id(user_id)
        if user is None:
            return ServiceResult(success=False, error="User not found.", status_code=404)
        return ServiceResult(success=True, data=user.to_profile())

    def fetch_attendants(self) -> ServiceResult[list[UserProfile]]:
        """Attendant roster (remote first, local fallback)."""
        return ServiceResult(success=True, data=self._repo.fetch_attendants())

    # ==================================================================
    # Mutations
    # ==================================================================

    def add_user(
        self,
        name: str,
        email: str,
        role: str,
        password: str,
    ) -> ServiceResult[UserProfile]:
        """Create an active user with a hashed credential."""
        if not name or not email or not role or not password:
            return self._bad_request("Missing required user fields")

        for check in (self.validate_name(name), self.validate_email(email)):
            if not check.is_valid:
                return self._bad_request(check.error_message or "Invalid input.")

        try:
            validated_role = UserRole(role)
        except ValueError:
            return self._bad_request(
                f"Invalid role specified: '{role}'. "
                f"Must be one of: {', '.join(r.value for r in UserRole)}."
            )

        if self._repo.get_by_email(email) is not None:
            return ServiceResult(
                success=False,
                error="A user with that email already exists",
                status_code=409,
            )

        try:
            hashed = self._credentials.hash(password)
        except InvalidInputError as exc:
            return self._bad_request(str(exc))

        user = User(
            id=uuid.uuid4().hex,
            name=name.strip(),
            email=email,
            role=validated_role,
            password=hashed,
            created_at=self._clock(),
            status=UserStatus.ACTIVE,
        )
        try:
            self._repo.add(user)
        except ValueError as exc:
            return ServiceResult(success=False, error=str(exc), status_code=409)

        self._activity_log.append(
            user.id, ActivityAction.USER_CREATE, f"User {user.email} created"
        )
        return ServiceResult(success=True, data=user.to_profile(), status_code=201)

    def update_user(
        self,
        user_id: str,
        changes: dict[str, object],
    ) -> ServiceResult[UserProfile]:
        """Apply *changes* to a user.  A supplied ``password`` is hashed."""
        user = self._repo.get_by_id(user_id)
        if user is None:
            return ServiceResult(success=False, error="User not found.", status_code=404)

        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            return self._bad_request(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}"
            )

        updates: dict[str, object] = dict(changes)

        if "name" in updates:
            check = self.validate_name(str(updates["name"]))
            if not check.is_valid:
                return self._bad_request(check.error_message or "Invalid name.")
            updates["name"] = str(updates["name"]).strip()

        if "email" in updates:
            new_email = str(updates["email"])
            check = self.validate_email(new_email)
            if not check.is_valid:
                return self._bad_request(check.error_message or "Invalid email.")
            existing = self._repo.get_by_email(new_email)
            if existing is not None and existing.id != user_id:
                return ServiceResult(
                    success=False,
                    error="A user with that email already exists",
                    status_code=409,
                )

        if "password" in updates:
            try:
                updates["password"] = self._credentials.hash(str(updates["password"] or ""))
            except InvalidInputError as exc:
                return self._bad_request(str(exc))

        try:
            updated = User.model_validate({**user.model_dump(), **updates})
        except ValidationError as exc:
            return self._bad_request(f"Invalid user data: {exc.errors()[0]['msg']}")

        self._repo.save(updated)
        self._activity_log.append(
            user_id, ActivityAction.USER_UPDATE, f"User {updated.email} updated"
        )
        return ServiceResult(success=True, data=updated.to_profile())

    def delete_user(self, user_id: str) -> ServiceResult[None]:
        if not self._repo.delete(user_id):
            return ServiceResult(success=False, error="User not found.", status_code=404)
        self._activity_log.append(
            user_id, ActivityAction.USER_DELETE, f"User {user_id} deleted"
        )
        return ServiceResult(success=True)

    def set_user_status(self, user_id: str, status: str) -> ServiceResult[UserProfile]:
        """Set ``active`` / ``suspended`` / ``frozen``."""
        try:
            validated_status = UserStatus(status)
        except ValueError:
            return self._bad_request(
                f"Invalid status: '{status}'. "
                f"Must be one of: {', '.join(s.value for s in UserStatus)}."
            )

        user = self._repo.get_by_id(user_id)
        if user is None:
            return ServiceResult(success=False, error="User not found.", status_code=404)

        user.status = validated_status
        self._repo.save(user)
        self._activity_log.append(
            user_id,
            ActivityAction.USER_STATUS_CHANGE,
            f"User {user.email} status set to {validated_status}",
        )
        return ServiceResult(success=True, data=user.to_profile())

    @staticmethod
    def _bad_request(message: str) -> ServiceResult:
        return ServiceResult(success=False, error=message, status_code=400)
