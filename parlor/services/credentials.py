"""
Credential Store.

bcrypt hashing and verification, plus the per-user password history
used to reject reuse of recent passwords.
"""

from __future__ import annotations

import re

import bcrypt
from pydantic import ValidationError

from parlor.logger import StructuredLogger
from parlor.models.auth_models import (
    InvalidInputError,
    PasswordHistoryEntry,
    PasswordStrength,
)
from parlor.services.base_service import BaseService
from parlor.storage import KeyValueStore, StorageKey
from parlor.utils.time_utils import Clock, utcnow

# bcrypt only considers the first 72 bytes of its input.
_BCRYPT_MAX_BYTES: int = 72

_STRENGTH_LABELS: tuple[str, ...] = (
    "Too short",
    "Weak",
    "Moderate",
    "Strong",
    "Very strong",
)


class CredentialStore(BaseService):
    """Hashes, verifies and remembers credentials.

    Parameters
    ----------
    store:
        Key-value store holding the password-history bucket.
    logger:
        Structured JSON logger.
    rounds:
        bcrypt cost factor.
    history_depth:
        How many recent hashes :meth:`is_reused` checks.
    clock:
        Source of ``changed_at`` timestamps.
    """

    def __init__(
        self,
        store: KeyValueStore,
        logger: StructuredLogger,
        rounds: int = 10,
        history_depth: int = 5,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._rounds = rounds
        self._history_depth = history_depth
        self._clock = clock

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------

    def hash(self, password: str) -> str:
        """Return a salted bcrypt hash of *password*.

        Raises
        ------
        InvalidInputError
            If *password* is empty or longer than 72 bytes.
        """
        if not password:
            raise InvalidInputError("Password must not be empty")
        encoded = password.encode("utf-8")
        if len(encoded) > _BCRYPT_MAX_BYTES:
            raise InvalidInputError(
                f"Password must not exceed {_BCRYPT_MAX_BYTES} bytes"
            )
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("ascii")

    def verify(self, password: str, hashed: str) -> bool:
        """``True`` when *password* matches *hashed*.  Never raises."""
        if not password or not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            self._logger.warning("Stored credential hash is malformed.")
            return False

    def is_reused(self, candidate: str, history: list[PasswordHistoryEntry]) -> bool:
        """``True`` when *candidate* matches one of the last entries of *history*."""
        recent = history[-self._history_depth:] if self._history_depth > 0 else []
        return any(self.verify(candidate, entry.password) for entry in recent)

    # ------------------------------------------------------------------
    # History persistence
    # ------------------------------------------------------------------

    def history_for(self, user_id: str) -> list[PasswordHistoryEntry]:
        """Hashes previously stored for *user_id*, oldest first."""
        return [entry for entry in self._load_history() if entry.user_id == user_id]

    def record_history(self, user_id: str, hashed: str) -> PasswordHistoryEntry:
        """Append *hashed* to the user's history.

        Only the most recent ``history_depth`` entries per user are kept.
        """
        entry = PasswordHistoryEntry(
            user_id=user_id, password=hashed, changed_at=self._clock()
        )
        entries = self._load_history()
        entries.append(entry)
        own = [i for i, e in enumerate(entries) if e.user_id == user_id]
        stale = set(own[: max(len(own) - self._history_depth, 0)])
        kept = [e for i, e in enumerate(entries) if i not in stale]
        self._store.set(
            StorageKey.PASSWORD_HISTORY,
            [e.model_dump(mode="json") for e in kept],
        )
        return entry

    def _load_history(self) -> list[PasswordHistoryEntry]:
        raw = self._store.get(StorageKey.PASSWORD_HISTORY)
        if not isinstance(raw, list):
            return []
        entries: list[PasswordHistoryEntry] = []
        for item in raw:
            try:
                entries.append(PasswordHistoryEntry.model_validate(item))
            except ValidationError:
                self._logger.warning("Dropping malformed password-history entry.")
        return entries

    # ------------------------------------------------------------------
    # Form helpers
    # ------------------------------------------------------------------

    @staticmethod
    def password_strength(password: str) -> PasswordStrength:
        """Score 0-4: length >= 8, an uppercase letter, a digit, a symbol."""
        score = 0
        if len(password) >= 8:
            score += 1
        if re.search(r"[A-Z]", password):
            score += 1
        if re.search(r"\d", password):
            score += 1
        if re.search(r"[^A-Za-z0-9]", password):
            score += 1
        return PasswordStrength(score=score, label=_STRENGTH_LABELS[score])

    @staticmethod
    def passwords_match(password: str, confirmation: str) -> bool:
        return bool(password) and password == confirmation
