"""
Authentication & Session State.

Provides an injectable ``SessionManager`` that owns the single active
session and the cached current-user pointer.  Both live in the
key-value store so a session survives restarts until it expires.

Usage::

    from parlor.auth import SessionManager

    sessions = SessionManager(store=store, activity_log=activity_log, logger=logger)
    sessions.create(user.id, profile=user.to_profile())
    session = sessions.current()      # None once expired
"""

from __future__ import annotations

import secrets
import threading
from datetime import timedelta
from typing import TYPE_CHECKING, Callable, Optional

from pydantic import ValidationError

from parlor.logger import StructuredLogger
from parlor.models.auth_models import Session
from parlor.models.enums import ActivityAction
from parlor.models.user import UserProfile
from parlor.storage import KeyValueStore, StorageKey
from parlor.utils.client_info import LOCAL_ADDRESS, AddressResolver, describe_client
from parlor.utils.time_utils import Clock, utcnow

if TYPE_CHECKING:
    from parlor.services.activity_log import ActivityLogService


class SessionManager:
    """Issues, validates and expires the single active session.

    Expiry is absolute (``created_at + ttl``) and enforced lazily: an
    expired session is deleted the first time it is read.

    Parameters
    ----------
    store:
        Key-value store holding the session and current-user buckets.
    activity_log:
        Receives a ``SESSION_CREATE`` entry per new session.  The
        manager registers itself as the log's session source.
    logger:
        Structured JSON logger.
    ttl:
        Absolute session lifetime.
    clock:
        Time source.
    address_resolver:
        Returns the client's network address.  Failures fall back to
        ``"local"``.
    client_descriptor:
        Returns a short description of the client machine.
    """

    def __init__(
        self,
        store: KeyValueStore,
        activity_log: ActivityLogService,
        logger: StructuredLogger,
        ttl: timedelta = timedelta(hours=8),
        clock: Clock = utcnow,
        address_resolver: Optional[AddressResolver] = None,
        client_descriptor: Callable[[], str] = describe_client,
    ) -> None:
        self._store = store
        self._activity_log = activity_log
        self._logger = logger
        self._ttl = ttl
        self._clock = clock
        self._address_resolver = address_resolver
        self._client_descriptor = client_descriptor
        self._lock: threading.RLock = threading.RLock()
        activity_log.attach_session_source(self.peek)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, user_id: str, profile: Optional[UserProfile] = None) -> Session:
        """Start a new session for *user_id*, replacing any prior one.

        When *profile* is given it becomes the cached current user.
        """
        now = self._clock()
        session = Session(
            user_id=user_id,
            token=secrets.token_hex(32),
            created_at=now,
            expires_at=now + self._ttl,
            last_activity=now,
            network_address=self._resolve_address(),
            client_descriptor=self._client_descriptor(),
        )
        with self._lock:
            with self._store.atomic():
                self._store.set(StorageKey.SESSION, session.model_dump(mode="json"))
                if profile is not None:
                    self._store.set(
                        StorageKey.CURRENT_USER, profile.model_dump(mode="json")
                    )
                else:
                    self._store.remove(StorageKey.CURRENT_USER)

        self._activity_log.append(
            user_id,
            ActivityAction.SESSION_CREATE,
            f"New session created from {session.network_address}",
        )
        return session

    def current(self) -> Optional[Session]:
        """The active session, or ``None``.

        An expired session is deleted.  A valid one is touched.
        """
        with self._lock:
            session = self.peek()
            if session is not None:
                self.touch(session)
            return session

    def peek(self) -> Optional[Session]:
        """Like :meth:`current` but without updating ``last_activity``."""
        with self._lock:
            session = self._load()
            if session is None:
                return None
            if not session.is_valid_at(self._clock()):
                self._logger.info(
                    "Session expired.",
                    extra={"event": "SESSION_EXPIRED", "user_id": session.user_id},
                )
                self.clear()
                return None
            return session

    def touch(self, session: Session) -> None:
        """Set ``last_activity`` to now and persist."""
        with self._lock:
            session.last_activity = self._clock()
            self._store.set(StorageKey.SESSION, session.model_dump(mode="json"))

    def current_user(self) -> Optional[UserProfile]:
        """The cached user, only while a session is valid."""
        with self._lock:
            if self.peek() is None:
                return None
            raw = self._store.get(StorageKey.CURRENT_USER)
            if not isinstance(raw, dict):
                return None
            try:
                return UserProfile.model_validate(raw)
            except ValidationError:
                self._logger.warning("Discarding malformed current-user record.")
                return None

    def clear(self) -> None:
        """Remove the session and the current-user pointer together."""
        with self._lock:
            with self._store.atomic():
                self._store.remove(StorageKey.SESSION)
                self._store.remove(StorageKey.CURRENT_USER)

    @property
    def is_authenticated(self) -> bool:
        """``True`` while a valid session exists."""
        return self.peek() is not None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _load(self) -> Optional[Session]:
        raw = self._store.get(StorageKey.SESSION)
        if not isinstance(raw, dict):
            return None
        try:
            return Session.model_validate(raw)
        except ValidationError:
            self._logger.warning("Discarding malformed session record.")
            self._store.remove(StorageKey.SESSION)
            return None

    def _resolve_address(self) -> str:
        if self._address_resolver is None:
            return LOCAL_ADDRESS
        try:
            return self._address_resolver() or LOCAL_ADDRESS
        except Exception as exc:
            self._logger.debug("Address resolver failed: %s", exc)
            return LOCAL_ADDRESS
