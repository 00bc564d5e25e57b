"""
Base Repository.

Provides shared infrastructure for all repositories:
- DatabaseManager reference (Supabase + SQLite outbox)
- KeyValueStore reference (local buckets)
- Logger reference
- Remote-first read and write helpers with local fallback
- Sync queue management for writes that only reached the local store
"""

from __future__ import annotations

import json
import sqlite3
from typing import Callable, ClassVar, Generic, Optional, TypeVar

from pydantic import BaseModel
from supabase import Client as SupabaseClient

from parlor.database import DatabaseManager
from parlor.logger import StructuredLogger
from parlor.models.enums import SyncOperation, SyncStatus
from parlor.models.sync_models import ShimResult
from parlor.storage import JsonValue, KeyValueStore, StorageKey

E = TypeVar("E", bound=BaseModel)
T = TypeVar("T")
R = TypeVar("R")


class BaseRepository(Generic[E]):
    """Base class for all repositories. Receives dependencies via __init__.

    Subclasses declare the remote ``TABLE``, the local ``BUCKET`` and the
    entity ``MODEL``.  ``REMOTE_COLUMNS`` renames local field names to
    remote column names where the two differ.
    """

    TABLE: ClassVar[str] = ""
    BUCKET: ClassVar[StorageKey]
    MODEL: ClassVar[type[BaseModel]]
    REMOTE_COLUMNS: ClassVar[dict[str, str]] = {}

    def __init__(
        self,
        db: DatabaseManager,
        store: KeyValueStore,
        logger: StructuredLogger,
    ) -> None:
        self._db = db
        self._store = store
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Returns the Supabase client.  Raises ``RuntimeError`` offline."""
        return self._db.supabase

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Returns the SQLite connection holding the outbox."""
        return self._db.sqlite

    # ------------------------------------------------------------------
    # Fallback helpers
    # ------------------------------------------------------------------

    def _execute_with_fallback(
        self,
        supabase_op: Callable[[], Optional[T]],
        local_op: Callable[[], Optional[T]],
        default_factory: Callable[[], T],
        *,
        operation_name: str,
        on_supabase_success: Optional[Callable[[T], None]] = None,
    ) -> T:
        """Execute a read with Supabase-first, local-fallback semantics.

        Execution order:
        1. Call ``supabase_op()``.  If it returns a non-``None`` value,
           optionally invoke ``on_supabase_success``, then return.
        2. Call ``local_op()``.  If it returns a non-``None`` value, return.
        3. Return ``default_factory()``.

        Parameters
        ----------
        supabase_op:
            Zero-argument callable that performs the remote query.
        local_op:
            Zero-argument callable that reads the local bucket.
        default_factory:
            Produces the typed default when both sources fail.
        operation_name:
            Human-readable label for log messages, e.g.
            ``"fetch_all (products)"``.
        on_supabase_success:
            Optional callback invoked with the remote result before it is
            returned.  Used for cache warming.  Exceptions are logged as
            warnings but never mask the result.
        """
        try:
            result = supabase_op()
            if result is not None:
                if on_supabase_success is not None:
                    try:
                        on_supabase_success(result)
                    except Exception as cache_exc:
                        self._logger.warning(
                            "Post-Supabase callback failed for %s: %s",
                            operation_name,
                            cache_exc,
                        )
                return result
        except Exception as exc:
            self._logger.warning(
                "Supabase unavailable for %s: %s", operation_name, exc
            )

        try:
            result = local_op()
            if result is not None:
                return result
        except (sqlite3.Error, ValueError) as local_exc:
            self._logger.error(
                "Local fallback also failed for %s: %s",
                operation_name,
                local_exc,
            )

        return default_factory()

    def _write_with_fallback(
        self,
        supabase_op: Callable[[], R],
        local_op: Callable[[], Optional[T]],
        *,
        operation: SyncOperation,
        entity_id: str,
        payload: dict[str, JsonValue],
        operation_name: str,
        parse_remote: Optional[Callable[[R], Optional[T]]] = None,
    ) -> ShimResult[T]:
        """Execute a write against Supabase, or locally plus outbox.

        On remote success the local bucket is left untouched and the
        call's return value goes through ``parse_remote``.  Only a failed
        call falls back: parse errors propagate, since the remote already
        holds the write.  On fallback the write is applied to the local
        bucket and queued for replay in one ``atomic()`` block.  Local
        errors propagate because a lost write must not be silent.
        """
        try:
            raw = supabase_op()
        except Exception as exc:
            self._logger.warning(
                "Supabase unavailable for %s, writing locally: %s",
                operation_name,
                exc,
            )
        else:
            if parse_remote is None:
                return ShimResult.remote(raw)
            return ShimResult.remote(parse_remote(raw))

        with self._store.atomic():
            value = local_op()
            self._queue_pending_sync(operation, entity_id, payload)
        return ShimResult.local_fallback(value)

    # ------------------------------------------------------------------
    # Outbox
    # ------------------------------------------------------------------

    def _commit(self) -> None:
        """Commit the SQLite transaction unless a batch is active."""
        if not self._db.in_batch:
            self.sqlite.commit()

    def _queue_pending_sync(
        self,
        operation: SyncOperation,
        entity_id: str,
        payload: dict[str, JsonValue],
    ) -> None:
        """Record a local-only write for replay when connectivity returns.

        Args:
            operation: ``insert``, ``update`` or ``delete``.
            entity_id: The ID of the affected entity.
            payload: Remote-shaped row (or column changes for updates).

        Raises:
            sqlite3.Error: The outbox row could not be written.  Inside
                ``_write_with_fallback`` this rolls back the local write too.
        """
        with self._db.write_lock:
            self.sqlite.execute(
                """
                INSERT INTO sync_queue (table_name, operation, entity_id, payload)
                VALUES (?, ?, ?, ?)
                """,
                (
                    self.TABLE,
                    str(operation),
                    entity_id,
                    json.dumps(payload, default=str),
                ),
            )
            self._commit()
        self._logger.info(
            "Queued pending sync: %s %s/%s", operation, self.TABLE, entity_id
        )

    def _has_pending_sync(self) -> bool:
        """``True`` while this table has outbox rows that never reached the remote.

        ``permanently_failed`` rows count too: their only copy is local.
        """
        with self._db.write_lock:
            row = self.sqlite.execute(
                """
                SELECT 1 FROM sync_queue
                WHERE table_name = ? AND status != ?
                LIMIT 1
                """,
                (self.TABLE, str(SyncStatus.SYNCED)),
            ).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Local bucket
    # ------------------------------------------------------------------

    def _load_local(self) -> list[E]:
        raw = self._store.get(self.BUCKET)
        if not isinstance(raw, list):
            return []
        return [self.MODEL.model_validate(item) for item in raw]  # type: ignore[misc]

    def _save_local(self, items: list[E]) -> None:
        self._store.set(
            self.BUCKET, [item.model_dump(mode="json") for item in items]
        )

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _to_remote_row(self, entity: E) -> dict[str, JsonValue]:
        return self._to_remote_columns(entity.model_dump(mode="json"))

    def _to_remote_columns(self, data: dict[str, JsonValue]) -> dict[str, JsonValue]:
        return {self.REMOTE_COLUMNS.get(key, key): value for key, value in data.items()}

    def _from_remote_row(self, row: dict[str, JsonValue]) -> E:
        local_names = {remote: local for local, remote in self.REMOTE_COLUMNS.items()}
        data = {local_names.get(key, key): value for key, value in row.items()}
        return self.MODEL.model_validate(data)  # type: ignore[return-value]
