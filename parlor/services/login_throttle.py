"""
Login-Attempt Throttle.

Keeps a process-wide, bounded list of login attempts and decides when an
identity is locked out: ``max_failures`` failed attempts inside a
sliding ``window`` refuse further logins until the window has passed
since the identity's last attempt.
"""

from __future__ import annotations

import math
from datetime import timedelta

from pydantic import ValidationError

from parlor.logger import StructuredLogger
from parlor.models.auth_models import LoginAttempt
from parlor.services.base_service import BaseService
from parlor.storage import KeyValueStore, StorageKey
from parlor.utils.time_utils import Clock, utcnow


class LoginThrottle(BaseService):
    """Records attempts and computes lockout for normalised identities."""

    def __init__(
        self,
        store: KeyValueStore,
        logger: StructuredLogger,
        max_failures: int = 5,
        window: timedelta = timedelta(minutes=30),
        retention: int = 100,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._max_failures = max_failures
        self._window = window
        self._retention = retention
        self._clock = clock

    @staticmethod
    def normalize(identity: str) -> str:
        return identity.strip().lower()

    def record_attempt(self, identity: str, successful: bool) -> LoginAttempt:
        """Append an attempt; keep only the most recent ``retention`` entries."""
        attempt = LoginAttempt(
            identity=self.normalize(identity),
            timestamp=self._clock(),
            successful=successful,
        )
        attempts = self._load()
        attempts.append(attempt)
        if len(attempts) > self._retention:
            attempts = attempts[-self._retention:]
        self._store.set(
            StorageKey.LOGIN_ATTEMPTS,
            [a.model_dump(mode="json") for a in attempts],
        )
        if not successful:
            self._logger.info(
                "Failed login attempt recorded.",
                extra={"event": "LOGIN_FAILED", "email": attempt.identity},
            )
        return attempt

    def recent_attempts(self, identity: str) -> list[LoginAttempt]:
        """Attempts for *identity* younger than the window, oldest first."""
        identity = self.normalize(identity)
        now = self._clock()
        return [
            a for a in self._load()
            if a.identity == identity and now - a.timestamp < self._window
        ]

    def recent_failures(self, identity: str) -> int:
        return sum(1 for a in self.recent_attempts(identity) if not a.successful)

    def lockout_remaining(self, identity: str) -> tuple[bool, int]:
        """``(is_locked, minutes_remaining)``.

        Minutes are measured from the identity's last recent attempt and
        rounded up.  ``(False, 0)`` when not locked.
        """
        recent = self.recent_attempts(identity)
        failures = sum(1 for a in recent if not a.successful)
        if failures < self._max_failures:
            return False, 0
        elapsed = self._clock() - recent[-1].timestamp
        remaining = (self._window - elapsed) / timedelta(minutes=1)
        return True, math.ceil(remaining)

    def _load(self) -> list[LoginAttempt]:
        raw = self._store.get(StorageKey.LOGIN_ATTEMPTS)
        if not isinstance(raw, list):
            return []
        attempts: list[LoginAttempt] = []
        for item in raw:
            try:
                attempts.append(LoginAttempt.model_validate(item))
            except ValidationError:
                self._logger.warning("Dropping malformed login-attempt entry.")
        return attempts
