"""
Sync Worker Service.

Replays pending ``sync_queue`` entries to Supabase.  The queue holds
every write that the data shim could only apply to the local store.

Two ways to drain it:

- :meth:`SyncWorkerService.run_once` processes one batch on the calling
  thread (used by the ``sync`` CLI command and by tests).
- :meth:`SyncWorkerService.start` / :meth:`stop` run a daemon thread that
  polls at a configurable interval with exponential backoff on
  consecutive failures.

Inserts are replayed as upserts so retrying a row that did reach the
remote is harmless.  Conflicting edits are not merged: the last replay
wins.

Only rejected replays count toward ``SYNC_MAX_RETRIES``.  When the remote
cannot be reached the row stays ``pending`` with its attempt count
unchanged, so an outage never exhausts a row.

Thread Safety
-------------
All SQLite access acquires ``DatabaseManager.write_lock`` (an
``RLock``), serialising the caller thread and the worker thread.
"""

from __future__ import annotations

import json
import threading
from typing import Optional

import httpx

from parlor.config import AppConfig
from parlor.database import DatabaseManager
from parlor.logger import StructuredLogger
from parlor.models.enums import SyncOperation, SyncStatus
from parlor.services.base_service import BaseService
from parlor.storage import JsonValue


class SyncWorkerService(BaseService):
    """Drains the local ``sync_queue`` outbox to Supabase.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager`` providing ``.supabase``,
        ``.sqlite``, ``.write_lock``, and ``.is_online`` access.
    config:
        Supplies the polling interval, backoff cap, batch size and
        retry limit.
    logger:
        Structured JSON logger.
    """

    _ALLOWED_TABLES: frozenset[str] = frozenset({
        "products",
        "sales",
        "assignments",
        "inventory",
    })

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __init__(
        self,
        db: DatabaseManager,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db: DatabaseManager = db
        self._base_interval_s: float = config.SYNC_BASE_INTERVAL_S
        self._max_interval_s: float = config.SYNC_MAX_INTERVAL_S
        self._batch_size: int = config.SYNC_BATCH_SIZE
        self._max_retries: int = config.SYNC_MAX_RETRIES
        self._thread: Optional[threading.Thread] = None
        self._stop_event: threading.Event = threading.Event()
        self._consecutive_failures: int = 0

    def start(self) -> None:
        """Start the sync worker on a daemon thread.

        Idempotent: calling ``start()`` while running is a no-op.
        """
        if self._thread is not None and self._thread.is_alive():
            self._logger.debug("Sync worker already running.")
            return

        self._stop_event.clear()
        self._consecutive_failures = 0

        self._thread = threading.Thread(
            target=self._run_loop,
            name="SyncWorker",
            daemon=True,
        )
        self._thread.start()
        self._logger.info("Sync worker started.")

    def stop(self) -> None:
        """Signal the worker to stop and wait up to 10 s for it to exit."""
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=10.0)

        if self._thread.is_alive():
            self._logger.warning("Sync worker thread did not terminate within 10 s.")
        else:
            self._logger.info("Sync worker stopped.")

        self._thread = None

    @property
    def is_running(self) -> bool:
        """``True`` when the worker thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Core loop
    # ------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Main loop executed on the daemon thread."""
        try:
            while not self._stop_event.is_set():
                interval = self._calculate_backoff_interval()
                if self._stop_event.wait(timeout=interval):
                    break

                if not self._db.is_online:
                    continue

                try:
                    synced, failed = self._process_pending_queue()
                    if failed and not synced:
                        self._consecutive_failures += 1
                    else:
                        self._consecutive_failures = 0
                except Exception:
                    self._consecutive_failures += 1
                    self._logger.warning("Sync cycle failed", exc_info=True)
        except Exception:
            self._logger.error(
                "Sync worker thread terminated due to unhandled exception.",
                exc_info=True,
            )

    def run_once(self) -> int:
        """Replay one batch now.  Returns the number of rows synced.

        Does nothing (returns ``0``) in offline mode.
        """
        if not self._db.is_online:
            self._logger.info("Offline: skipping outbox replay.")
            return 0
        synced, _ = self._process_pending_queue()
        return synced

    # ------------------------------------------------------------------
    # Queue processing
    # ------------------------------------------------------------------

    def _process_pending_queue(self) -> tuple[int, int]:
        """Read pending rows, replay to Supabase, mark synced/failed.

        Rows replay in queue order.  Once a row for an entity fails, the
        later rows for that ``(table_name, entity_id)`` wait for the next
        cycle so a delete never overtakes the insert it follows.  A
        transport error ends the cycle without spending an attempt.

        Returns
        -------
        tuple[int, int]
            ``(synced, failed)`` row counts for this cycle.
        """
        with self._db.write_lock:
            rows = self._db.sqlite.execute(
                """
                SELECT id, table_name, operation, entity_id, payload
                FROM sync_queue
                WHERE status = ?
                ORDER BY id ASC
                LIMIT ?
                """,
                (str(SyncStatus.PENDING), self._batch_size),
            ).fetchall()

        if not rows:
            return 0, 0

        synced_count: int = 0
        failed_count: int = 0
        blocked: set[tuple[str, str]] = set()

        for row in rows:
            queue_id: int = row["id"]
            table_name: str = row["table_name"]
            operation: str = row["operation"]
            entity_id: str = row["entity_id"]
            key = (table_name, entity_id)

            if key in blocked:
                self._logger.debug(
                    "Holding queue row %d behind an earlier failure for %s/%s",
                    queue_id, table_name, entity_id,
                )
                continue

            try:
                payload: dict[str, JsonValue] = json.loads(row["payload"])
            except (json.JSONDecodeError, TypeError) as exc:
                self._logger.error(
                    "Malformed JSON payload in sync_queue row %d: %s", queue_id, exc,
                )
                self._mark_permanently_failed(queue_id, f"Malformed JSON: {exc}")
                blocked.add(key)
                failed_count += 1
                continue

            try:
                self._replay_operation(table_name, operation, entity_id, payload)
            except Exception as exc:
                failed_count += 1
                if _is_transient(exc):
                    self._logger.warning(
                        "Remote unreachable while syncing queue row %d: %s", queue_id, exc,
                    )
                    self._mark_deferred(queue_id, str(exc))
                    break
                self._logger.warning("Failed to sync queue row %d: %s", queue_id, exc)
                self._mark_failed(queue_id, str(exc))
                blocked.add(key)
                continue

            self._mark_synced(queue_id)
            synced_count += 1
            self._logger.debug(
                "Synced queue row %d: %s.%s(%s)", queue_id, table_name, operation, entity_id,
            )

        if synced_count > 0:
            self._logger.info(
                "Sync cycle complete: %d/%d rows synced.", synced_count, len(rows),
            )

        return synced_count, failed_count

    # ------------------------------------------------------------------
    # Operation dispatcher
    # ------------------------------------------------------------------

    def _replay_operation(
        self,
        table_name: str,
        operation: str,
        entity_id: str,
        payload: dict[str, JsonValue],
    ) -> None:
        """Replay a single queued operation to Supabase.

        Raises
        ------
        ValueError
            If the table or operation is not recognised.
        """
        if table_name not in self._ALLOWED_TABLES:
            raise ValueError(f"Disallowed sync target table: {table_name}")

        supabase = self._db.supabase

        if operation == SyncOperation.INSERT:
            supabase.table(table_name).upsert(payload).execute()

        elif operation == SyncOperation.UPDATE:
            supabase.table(table_name).update(payload).eq("id", entity_id).execute()

        elif operation == SyncOperation.DELETE:
            supabase.table(table_name).delete().eq("id", entity_id).execute()

        else:
            raise ValueError(f"Unknown sync operation: {operation}")

    # ------------------------------------------------------------------
    # Exponential backoff
    # ------------------------------------------------------------------

    def _calculate_backoff_interval(self) -> float:
        """Return the sleep interval for the current failure count.

        On zero failures the base interval is used.  Each consecutive
        failure doubles the interval (capped at the configured maximum).
        """
        if self._consecutive_failures == 0:
            return self._base_interval_s

        backoff = self._base_interval_s * (2 ** min(self._consecutive_failures, 6))
        return min(backoff, self._max_interval_s)

    # ------------------------------------------------------------------
    # Mark helpers (direct SQLite, with write_lock)
    # ------------------------------------------------------------------

    def _mark_synced(self, queue_id: int) -> None:
        with self._db.write_lock:
            self._db.sqlite.execute(
                """
                UPDATE sync_queue
                SET status = ?, attempts = attempts + 1,
                    attempted_at = CURRENT_TIMESTAMP, error_message = NULL
                WHERE id = ?
                """,
                (str(SyncStatus.SYNCED), queue_id),
            )
            self._db.sqlite.commit()

    def _mark_failed(self, queue_id: int, error_message: str) -> None:
        """Count a failed attempt; give up after the configured retry limit.

        A row that has now failed ``SYNC_MAX_RETRIES`` times becomes
        ``permanently_failed`` and is never retried.  Otherwise it stays
        ``pending`` for the next cycle.
        """
        with self._db.write_lock:
            row = self._db.sqlite.execute(
                "SELECT attempts FROM sync_queue WHERE id = ?", (queue_id,),
            ).fetchone()
            attempts: int = (int(row["attempts"]) if row else 0) + 1
            status = (
                SyncStatus.PERMANENTLY_FAILED
                if attempts >= self._max_retries
                else SyncStatus.PENDING
            )
            self._db.sqlite.execute(
                """
                UPDATE sync_queue
                SET status = ?, attempts = ?, attempted_at = CURRENT_TIMESTAMP,
                    error_message = ?
                WHERE id = ?
                """,
                (str(status), attempts, error_message, queue_id),
            )
            self._db.sqlite.commit()

        if status == SyncStatus.PERMANENTLY_FAILED:
            self._logger.error(
                "Sync queue row %d permanently failed after %d attempts: %s",
                queue_id,
                attempts,
                error_message,
            )

    def _mark_permanently_failed(self, queue_id: int, error_message: str) -> None:
        with self._db.write_lock:
            self._db.sqlite.execute(
                """
                UPDATE sync_queue
                SET status = ?, attempts = attempts + 1,
                    attempted_at = CURRENT_TIMESTAMP, error_message = ?
                WHERE id = ?
                """,
                (str(SyncStatus.PERMANENTLY_FAILED), error_message, queue_id),
            )
            self._db.sqlite.commit()

    def _mark_deferred(self, queue_id: int, error_message: str) -> None:
        """Note a transport failure without counting it as an attempt."""
        with self._db.write_lock:
            self._db.sqlite.execute(
                """
                UPDATE sync_queue
                SET attempted_at = CURRENT_TIMESTAMP, error_message = ?
                WHERE id = ?
                """,
                (error_message, queue_id),
            )
            self._db.sqlite.commit()


def _is_transient(exc: Exception) -> bool:
    """``True`` for failures to reach the remote, as opposed to rejections."""
    return isinstance(exc, (OSError, httpx.TransportError))
