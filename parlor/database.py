"""
Database Abstraction Layer.

Owns the two stores behind the local-first data shim:

- **SQLite (local)**: always available.  Holds the key-value buckets
  (``local_store``) that mirror every entity collection, and the
  ``sync_queue`` outbox of writes that could only be applied locally.

- **Supabase (remote)**: optional.  Repositories try it first for every
  read and write and fall back to SQLite on any failure.

This module only manages the raw *connections*; it contains no query
logic beyond the outbox counter.

Usage (dependency injection at app startup)::

    from parlor.database import DatabaseManager
    from parlor.logger import StructuredLogger

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.SQLITE_PATH),
        logger=StructuredLogger(name="database"),
        timeout_s=config.REMOTE_TIMEOUT_S,
    )
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from supabase import Client as SupabaseClient
from supabase import create_client
from supabase.client import ClientOptions

from parlor.logger import StructuredLogger


class DatabaseManager:
    """Manages connections to the local SQLite database and the Supabase project.

    When ``supabase_url`` or ``supabase_key`` is empty (and no ``client``
    is injected) the Supabase client is **not** created and the
    application runs in offline mode.  The ``RuntimeError`` raised by the
    ``supabase`` property then drives every repository onto its local
    fallback path.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL.  May be empty to run offline.
    supabase_key:
        The Supabase anonymous key.  May be empty to run offline.
    sqlite_path:
        Filesystem path for the local SQLite database file, or
        ``Path(":memory:")`` for an ephemeral database.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    timeout_s:
        Upper bound, in seconds, for every PostgREST request.  A hung
        remote call therefore fails over to the local store instead of
        blocking indefinitely.
    client:
        Pre-built remote client.  Takes precedence over URL/key.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Path,
        logger: StructuredLogger,
        timeout_s: float = 10.0,
        client: Optional[SupabaseClient] = None,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._in_batch: bool = False
        self._closed: bool = False

        # --- Supabase (optional) ---
        self._supabase: Optional[SupabaseClient] = client
        if client is not None:
            self._logger.info("Using injected remote client.")
        elif supabase_url and supabase_key:
            try:
                self._supabase = create_client(
                    supabase_url,
                    supabase_key,
                    options=ClientOptions(postgrest_client_timeout=timeout_s),
                )
                self._logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. Running in offline mode.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s. "
                    "Running in offline mode.",
                    exc,
                    exc_info=True,
                )
        else:
            self._logger.warning(
                "Supabase credentials not configured; running in offline mode."
            )

        # --- SQLite (always required) ---
        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """Return the remote client.

        Raises
        ------
        RuntimeError
            If no client is available (offline mode).  Repositories
            treat this like any other remote failure.
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "The application is running in offline mode."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        """``True`` when a remote client is available."""
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the SQLite connection."""
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Return the write lock for thread-safe SQLite operations.

        The caller thread and the sync worker both write to SQLite, so
        every write sequence must hold this lock::

            with db.write_lock:
                db.sqlite.execute("INSERT ...")
                db.sqlite.commit()
        """
        return self._write_lock

    @property
    def in_batch(self) -> bool:
        """``True`` while a :meth:`batch_write` context is active."""
        return self._in_batch

    @contextmanager
    def batch_write(self) -> Generator[None, None, None]:
        """Defer SQLite commits until the block exits.

        While the context is active, :pyattr:`in_batch` is ``True`` and
        store/repository commits become no-ops.  On normal exit a single
        ``commit()`` is issued; on exception the transaction is rolled
        back and the error re-raised.  Holds :pyattr:`write_lock` for the
        whole block.

        Example::

            with db.batch_write():
                store.remove(StorageKey.SESSION)
                store.remove(StorageKey.CURRENT_USER)
            # both deletes become visible here, or neither does
        """
        with self._write_lock:
            if self._in_batch:
                # Re-entrant: the outer batch commits.
                yield
                return

            self._in_batch = True
            try:
                yield
                self._sqlite_conn.commit()
                self._logger.debug("Batch write committed.")
            except Exception:
                self._sqlite_conn.rollback()
                self._logger.error(
                    "Batch write rolled back due to exception.", exc_info=True,
                )
                raise
            finally:
                self._in_batch = False

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def get_pending_sync_count(self) -> int:
        """Return the number of outbox rows still waiting for replay.

        Returns ``0`` when the table does not exist yet or the query
        fails for any reason.
        """
        with self._write_lock:
            try:
                row = self._sqlite_conn.execute(
                    "SELECT COUNT(*) AS cnt FROM sync_queue WHERE status = 'pending'",
                ).fetchone()
                return int(row["cnt"]) if row else 0
            except sqlite3.Error:
                self._logger.debug(
                    "get_pending_sync_count query failed; returning 0.",
                    exc_info=True,
                )
                return 0

    def close(self) -> None:
        """Close the local SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            if self._closed:
                return
            self._sqlite_conn.close()
            self._closed = True
            self._logger.info("SQLite connection closed.")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Path) -> sqlite3.Connection:
        """Open (or create) the SQLite database.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory,
            re-raised with a message the CLI can show as-is.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process.  Please check file permissions and try again."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
