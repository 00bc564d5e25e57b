"""
Authentication Service.

Single orchestrator for every authentication concern: login (with
throttling and bootstrap credentials), password change, admin password
reset and logout.

All methods return typed ``AuthResult`` models.  The error taxonomy in
``AuthErrorCode`` is never raised to callers.
"""

from __future__ import annotations

from typing import Optional

from parlor.auth import SessionManager
from parlor.logger import StructuredLogger
from parlor.models.auth_models import AuthErrorCode, AuthResult, InvalidInputError
from parlor.models.enums import ActivityAction, UserStatus
from parlor.models.user import User
from parlor.repositories.user_repository import UserRepository
from parlor.services.activity_log import ActivityLogService
from parlor.services.base_service import BaseService
from parlor.services.credentials import CredentialStore
from parlor.services.login_throttle import LoginThrottle
from parlor.storage import KeyValueStore


# ---------------------------------------------------------------------------
# User-facing messages
# ---------------------------------------------------------------------------

_MSG_INVALID_CREDENTIALS: str = "Invalid email or password"
_MSG_SUSPENDED: str = (
    "This account has been suspended. Please contact the administrator."
)
_MSG_USER_NOT_FOUND: str = "User not found"
_MSG_WRONG_CURRENT_PASSWORD: str = "Current password is incorrect"
_MSG_PASSWORD_REUSED: str = (
    "New password cannot be the same as any of your last 5 passwords"
)
_MSG_ONLY_ADMINS: str = "Only admins can reset passwords"
_MSG_TARGET_NOT_FOUND: str = "Target user not found"
_MSG_ADMIN_TARGET: str = "Cannot reset another admin password"


class AuthService(BaseService):
    """Centralised authentication service.

    Receives all collaborators via ``__init__`` and exposes pure
    request -> result methods for every auth flow.

    Parameters
    ----------
    users:
        Local user store (authoritative for credentials).
    store:
        Key-value store; multi-bucket updates run in its ``atomic()``.
    credentials:
        Hashing, verification and password history.
    throttle:
        Login-attempt recorder and lockout policy.
    sessions:
        Single active session holder.
    activity_log:
        Security audit trail.
    logger:
        Structured JSON logger.
    min_reset_password_length:
        Minimum length accepted by :meth:`admin_reset_password`.
    """

    def __init__(
        self,
        users: UserRepository,
        store: KeyValueStore,
        credentials: CredentialStore,
        throttle: LoginThrottle,
        sessions: SessionManager,
        activity_log: ActivityLogService,
        logger: StructuredLogger,
        min_reset_password_length: int = 6,
    ) -> None:
        super().__init__(logger)
        self._users = users
        self._store = store
        self._credentials = credentials
        self._throttle = throttle
        self._sessions = sessions
        self._activity_log = activity_log
        self._min_reset_length = min_reset_password_length

    @staticmethod
    def normalize_email(email: str) -> str:
        """Normalise an email address: strip whitespace and lowercase."""
        return email.strip().lower()

    # ==================================================================
    # Login
    # ==================================================================

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate *email* / *password* and open a session.

        The lockout gate runs before the user lookup so a locked identity
        learns nothing about whether it exists.  The gate itself records
        no attempt.
        """
        email = self.normalize_email(email)

        # --- Rate-limit gate ---
        is_locked, minutes = self._throttle.lockout_remaining(email)
        if is_locked:
            self._logger.warning(
                "Login refused: %s is locked out for %d more minute(s).",
                email,
                minutes,
                extra={"event": "LOGIN_LOCKED", "email": email},
            )
            return AuthResult.fail(
                AuthErrorCode.TOO_MANY_ATTEMPTS,
                f"Too many failed attempts. Please try again in {minutes} minutes.",
            )

        user: Optional[User] = self._users.get_by_email(email)
        if user is None:
            self._throttle.record_attempt(email, successful=False)
            return AuthResult.fail(
                AuthErrorCode.INVALID_CREDENTIALS, _MSG_INVALID_CREDENTIALS
            )

        if user.status == UserStatus.SUSPENDED:
            self._logger.info(
                "Login refused for suspended account %s.",
                email,
                extra={"event": "LOGIN_SUSPENDED", "user_id": user.id},
            )
            return AuthResult.fail(AuthErrorCode.ACCOUNT_SUSPENDED, _MSG_SUSPENDED)

        if not user.has_credential:
            # Bootstrap: the first password presented becomes the credential.
            try:
                user.password = self._credentials.hash(password)
            except InvalidInputError as exc:
                self._throttle.record_attempt(email, successful=False)
                return AuthResult.fail(AuthErrorCode.INVALID_INPUT, str(exc))
            self._users.save(user)
            self._logger.info(
                "Initial credential set for %s.",
                email,
                extra={"event": "CREDENTIAL_BOOTSTRAP", "user_id": user.id},
            )
        elif not self._credentials.verify(password, user.password or ""):
            self._throttle.record_attempt(email, successful=False)
            return AuthResult.fail(
                AuthErrorCode.INVALID_CREDENTIALS, _MSG_INVALID_CREDENTIALS
            )

        self._throttle.record_attempt(email, successful=True)
        profile = user.to_profile()
        self._sessions.create(user.id, profile=profile)

        self._logger.info(
            "User authenticated: %s (role: %s)",
            profile.name,
            profile.role,
            extra={"event": "LOGIN", "email": profile.email, "user_id": profile.id},
        )
        return AuthResult(success=True, user=profile)

    # ==================================================================
    # Password change
    # ==================================================================

    def change_password(
        self,
        user_id: str,
        current_password: str,
        new_password: str,
    ) -> AuthResult:
        """Replace the caller's own password.

        On success the active session is cleared so the user must log
        in again with the new credential.
        """
        user = self._users.get_by_id(user_id)
        if user is None:
            return AuthResult.fail(AuthErrorCode.USER_NOT_FOUND, _MSG_USER_NOT_FOUND)

        if not self._credentials.verify(current_password, user.password or ""):
            return AuthResult.fail(
                AuthErrorCode.INVALID_CREDENTIALS, _MSG_WRONG_CURRENT_PASSWORD
            )

        if not new_password:
            return AuthResult.fail(
                AuthErrorCode.INVALID_INPUT, "New password must not be empty"
            )

        history = self._credentials.history_for(user_id)
        if self._credentials.is_reused(new_password, history):
            return AuthResult.fail(AuthErrorCode.PASSWORD_REUSED, _MSG_PASSWORD_REUSED)

        try:
            self._store_new_credential(user, new_password)
        except InvalidInputError as exc:
            return AuthResult.fail(AuthErrorCode.INVALID_INPUT, str(exc))

        self._activity_log.append(
            user_id, ActivityAction.PASSWORD_CHANGE, "Password changed successfully"
        )
        self._sessions.clear()
        return AuthResult(success=True)

    # ==================================================================
    # Admin reset
    # ==================================================================

    def admin_reset_password(
        self,
        acting_user_id: str,
        target_user_id: str,
        new_password: str,
    ) -> AuthResult:
        """Let an administrator set a non-admin user's password."""
        actor = self._users.get_by_id(acting_user_id)
        if actor is None or not actor.is_admin:
            self._logger.warning(
                "Password reset refused: %s is not an admin.",
                acting_user_id,
                extra={"event": "RESET_FORBIDDEN", "user_id": acting_user_id},
            )
            return AuthResult.fail(AuthErrorCode.FORBIDDEN, _MSG_ONLY_ADMINS)

        target = self._users.get_by_id(target_user_id)
        if target is None:
            return AuthResult.fail(AuthErrorCode.USER_NOT_FOUND, _MSG_TARGET_NOT_FOUND)

        if target.is_admin:
            return AuthResult.fail(AuthErrorCode.FORBIDDEN, _MSG_ADMIN_TARGET)

        if not new_password or len(new_password) < self._min_reset_length:
            return AuthResult.fail(
                AuthErrorCode.WEAK_PASSWORD,
                f"Password must be at least {self._min_reset_length} characters long",
            )

        try:
            self._store_new_credential(target, new_password)
        except InvalidInputError as exc:
            return AuthResult.fail(AuthErrorCode.INVALID_INPUT, str(exc))

        self._activity_log.append(
            actor.id,
            ActivityAction.ADMIN_RESET_PASSWORD,
            f"Admin {actor.email} reset password for {target.email}",
        )

        session = self._sessions.peek()
        if session is not None and session.user_id == target.id:
            self._sessions.clear()
        return AuthResult(success=True)

    # ==================================================================
    # Logout
    # ==================================================================

    def logout(self) -> None:
        """Log ``LOGOUT`` for the session owner and clear the session."""
        session = self._sessions.peek()
        if session is not None:
            self._activity_log.append(
                session.user_id, ActivityAction.LOGOUT, "User logged out"
            )
        self._sessions.clear()
        self._logger.info(
            "User logged out.",
            extra={
                "event": "LOGOUT",
                "user_id": session.user_id if session else "unknown",
            },
        )

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _store_new_credential(self, user: User, new_password: str) -> None:
        """Hash, store and append to history in one atomic block."""
        hashed = self._credentials.hash(new_password)
        with self._store.atomic():
            user.password = hashed
            self._users.save(user)
            self._credentials.record_history(user.id, hashed)
