"""
Activity Log.

Append-only audit trail of security-relevant actions, bounded to the
most recent ``capacity`` entries (oldest evicted first).  Every entry is
also emitted as an ``AUDIT:`` JSON log line.
"""

from __future__ import annotations

from typing import Callable, Optional

from pydantic import ValidationError

from parlor.logger import StructuredLogger
from parlor.models.auth_models import ActivityLogEntry, Session
from parlor.models.enums import ActivityAction
from parlor.services.base_service import BaseService
from parlor.storage import KeyValueStore, StorageKey
from parlor.utils.time_utils import Clock, utcnow

UNKNOWN: str = "unknown"

SessionSource = Callable[[], Optional[Session]]


class ActivityLogService(BaseService):
    """Persists :class:`ActivityLogEntry` rows in the activity-log bucket.

    The network address and client descriptor of each entry come from
    the active session.  The session source is attached after
    construction because the session manager itself writes to this log.
    """

    def __init__(
        self,
        store: KeyValueStore,
        logger: StructuredLogger,
        capacity: int = 1000,
        clock: Clock = utcnow,
        session_source: Optional[SessionSource] = None,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._capacity = capacity
        self._clock = clock
        self._session_source: Optional[SessionSource] = session_source

    def attach_session_source(self, source: SessionSource) -> None:
        self._session_source = source

    def append(
        self,
        user_id: str,
        action: ActivityAction,
        detail: str = "",
    ) -> ActivityLogEntry:
        session = self._session_source() if self._session_source else None
        entry = ActivityLogEntry(
            timestamp=self._clock(),
            user_id=user_id,
            action=action,
            detail=detail,
            network_address=session.network_address if session else UNKNOWN,
            client_descriptor=session.client_descriptor if session else UNKNOWN,
        )

        entries = self._load()
        entries.append(entry)
        if len(entries) > self._capacity:
            entries = entries[-self._capacity:]
        self._store.set(
            StorageKey.ACTIVITY_LOG,
            [e.model_dump(mode="json") for e in entries],
        )

        self._logger.audit(entry.model_dump(mode="json"))
        return entry

    def query(self, user_id: Optional[str] = None) -> list[ActivityLogEntry]:
        """All entries, or only *user_id*'s, in insertion order."""
        entries = self._load()
        if user_id is None:
            return entries
        return [e for e in entries if e.user_id == user_id]

    def _load(self) -> list[ActivityLogEntry]:
        raw = self._store.get(StorageKey.ACTIVITY_LOG)
        if not isinstance(raw, list):
            return []
        entries: list[ActivityLogEntry] = []
        for item in raw:
            try:
                entries.append(ActivityLogEntry.model_validate(item))
            except ValidationError:
                self._logger.warning("Dropping malformed activity-log entry.")
        return entries
