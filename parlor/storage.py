"""
Local Key-Value Storage.

Every collection the core persists locally (users, products, sales,
assignments, the active session, the activity log, ...) lives in one
named bucket holding a JSON document.  Services and repositories receive
a :class:`KeyValueStore` through their constructor, so the backing store
can be the SQLite database in production or a plain dict in tests.

Buckets are read-modify-written as a whole.  Two processes writing the
same bucket concurrently can lose an update; the deployment model is a
single operator per install.
"""

from __future__ import annotations

import copy
import json
import sqlite3
from contextlib import contextmanager
from enum import StrEnum
from typing import ContextManager, Generator, Optional, Protocol, Union

from parlor.database import DatabaseManager

__all__ = [
    "JsonValue",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "StorageKey",
]

JsonValue = Union[
    str,
    int,
    float,
    bool,
    None,
    dict[str, "JsonValue"],
    list["JsonValue"],
]


class StorageKey(StrEnum):
    """Bucket names.  Changing a value orphans existing local data."""

    USERS = "parlor_users"
    PRODUCTS = "parlor_products"
    SALES = "parlor_sales"
    INVENTORY = "parlor_inventory"
    ASSIGNMENTS = "parlor_assignments"
    CURRENT_USER = "parlor_current_user"
    LOGIN_ATTEMPTS = "parlor_login_attempts"
    SESSION = "parlor_session"
    ACTIVITY_LOG = "parlor_activity_log"
    PASSWORD_HISTORY = "parlor_password_history"


class KeyValueStore(Protocol):
    """Capability required by every component that persists local state."""

    def get(self, key: str) -> Optional[JsonValue]:
        """Return the stored value, or ``None`` when *key* is absent."""
        ...

    def set(self, key: str, value: JsonValue) -> None:
        """Replace the value stored under *key*."""
        ...

    def remove(self, key: str) -> None:
        """Delete *key*.  No-op when absent."""
        ...

    def contains(self, key: str) -> bool:
        """``True`` when *key* exists (even if it holds an empty list)."""
        ...

    def atomic(self) -> ContextManager[None]:
        """Context manager: writes inside become visible together or not at all."""
        ...


class SQLiteKeyValueStore:
    """:class:`KeyValueStore` backed by the ``local_store`` table.

    Writes hold :pyattr:`DatabaseManager.write_lock` and commit
    immediately unless a :meth:`atomic` block (``batch_write``) is open.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def get(self, key: str) -> Optional[JsonValue]:
        with self._db.write_lock:
            row = self._db.sqlite.execute(
                "SELECT value FROM local_store WHERE key = ?", (key,)
            ).fetchone()
        return json.loads(row["value"]) if row else None

    def set(self, key: str, value: JsonValue) -> None:
        with self._db.write_lock:
            self._db.sqlite.execute(
                """
                INSERT INTO local_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, json.dumps(value, ensure_ascii=False)),
            )
            self._commit()

    def remove(self, key: str) -> None:
        with self._db.write_lock:
            self._db.sqlite.execute("DELETE FROM local_store WHERE key = ?", (key,))
            self._commit()

    def contains(self, key: str) -> bool:
        with self._db.write_lock:
            row = self._db.sqlite.execute(
                "SELECT 1 FROM local_store WHERE key = ?", (key,)
            ).fetchone()
        return row is not None

    @contextmanager
    def atomic(self) -> Generator[None, None, None]:
        with self._db.batch_write():
            yield

    def _commit(self) -> None:
        if not self._db.in_batch:
            try:
                self._db.sqlite.commit()
            except sqlite3.Error:
                self._db.sqlite.rollback()
                raise


class MemoryKeyValueStore:
    """Dict-backed :class:`KeyValueStore`.

    Values are JSON round-tripped on write so callers cannot mutate
    stored state through a retained reference, and non-serialisable
    values fail the same way they would against SQLite.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[JsonValue]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: JsonValue) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def contains(self, key: str) -> bool:
        return key in self._data

    @contextmanager
    def atomic(self) -> Generator[None, None, None]:
        snapshot = copy.copy(self._data)
        try:
            yield
        except Exception:
            self._data = snapshot
            raise
