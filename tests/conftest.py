"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

import pytest

# Keep test runs from writing parlor.log into the working tree.
os.environ["LOG_FILE"] = ""

from parlor.config import AppConfig  # noqa: E402
from parlor.database import DatabaseManager  # noqa: E402
from parlor.logger import StructuredLogger  # noqa: E402
from parlor.schema import initialize_schema  # noqa: E402
from parlor.services import ServiceContainer, create_services  # noqa: E402
from parlor.storage import SQLiteKeyValueStore  # noqa: E402

TEST_ADDRESS = "10.0.0.7"

# Loggers the entry point creates; registered first so their JSON lines
# stay out of captured stdout.
for _name in ("main", "database", "schema", "seed", "services"):
    StructuredLogger(name=_name, stream=io.StringIO(), log_file="")


# ==================== Clock ====================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ==================== Fake remote store ====================


class FakeResponse:
    def __init__(self, data: list[dict[str, Any]]) -> None:
        self.data = data


class FakeQuery:
    """Chainable stand-in for a PostgREST request builder."""

    def __init__(self, remote: "FakeSupabase", table: str) -> None:
        self._remote = remote
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._filters: list[tuple[str, Any]] = []

    def select(self, *_columns: str) -> "FakeQuery":
        self._op = "select"
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self._op, self._payload = "insert", payload
        return self

    def upsert(self, payload: Any) -> "FakeQuery":
        self._op, self._payload = "upsert", payload
        return self

    def update(self, payload: dict[str, Any]) -> "FakeQuery":
        self._op, self._payload = "update", payload
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append((column, value))
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(str(row.get(col)) == str(val) for col, val in self._filters)

    def execute(self) -> FakeResponse:
        self._remote.calls.append((self._table, self._op, self._payload, list(self._filters)))
        if self._remote.fail:
            raise self._remote.error
        if (self._table, self._op) in self._remote.reject_once:
            self._remote.reject_once.remove((self._table, self._op))
            raise RemoteRejected(f"{self._op} on {self._table} rejected")

        rows = self._remote.tables.setdefault(self._table, [])
        if self._op == "select":
            return FakeResponse([dict(r) for r in rows if self._matches(r)])

        if self._op in ("insert", "upsert"):
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            for item in items:
                if self._op == "upsert":
                    rows[:] = [r for r in rows if r.get("id") != item.get("id")]
                rows.append(dict(item))
            return FakeResponse([dict(i) for i in items])

        if self._op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self._payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        removed = [dict(r) for r in rows if self._matches(r)]
        rows[:] = [r for r in rows if not self._matches(r)]
        return FakeResponse(removed)


class RemoteRejected(Exception):
    """Stands in for an API error: the remote answered and refused."""


class FakeSupabase:
    """In-memory remote.

    Set ``fail = True`` to make every call raise ``error`` (a connection
    error unless replaced).  Add ``(table, op)`` pairs to ``reject_once``
    to have the next matching call raise :class:`RemoteRejected`.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str, Any, list[tuple[str, Any]]]] = []
        self.fail = False
        self.error: Exception = ConnectionError("remote unreachable")
        self.reject_once: list[tuple[str, str]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


# ==================== Fixtures ====================


@pytest.fixture(scope="session")
def logger() -> StructuredLogger:
    return StructuredLogger(name="parlor.tests", stream=io.StringIO(), log_file="")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(BCRYPT_ROUNDS=4, LOG_FILE="", SEED_EMAIL_DOMAIN="x.com")


@pytest.fixture
def remote() -> FakeSupabase:
    return FakeSupabase()


def _open_db(logger: StructuredLogger, client: Optional[FakeSupabase]) -> DatabaseManager:
    db = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=Path(":memory:"),
        logger=logger,
        client=client,  # type: ignore[arg-type]
    )
    initialize_schema(db.sqlite, logger)
    return db


@pytest.fixture
def db(logger: StructuredLogger) -> Iterator[DatabaseManager]:
    """Offline database manager: every remote call falls back."""
    manager = _open_db(logger, None)
    yield manager
    manager.close()


@pytest.fixture
def online_db(logger: StructuredLogger, remote: FakeSupabase) -> Iterator[DatabaseManager]:
    manager = _open_db(logger, remote)
    yield manager
    manager.close()


@pytest.fixture
def store(db: DatabaseManager) -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(db)


@pytest.fixture
def online_store(online_db: DatabaseManager) -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(online_db)


@pytest.fixture
def services(
    db: DatabaseManager,
    store: SQLiteKeyValueStore,
    config: AppConfig,
    clock: FakeClock,
    logger: StructuredLogger,
) -> ServiceContainer:
    return create_services(
        db=db,
        store=store,
        config=config,
        clock=clock,
        address_resolver=lambda: TEST_ADDRESS,
        logger=logger,
    )


@pytest.fixture
def online_services(
    online_db: DatabaseManager,
    online_store: SQLiteKeyValueStore,
    config: AppConfig,
    clock: FakeClock,
    logger: StructuredLogger,
) -> ServiceContainer:
    return create_services(
        db=online_db,
        store=online_store,
        config=config,
        clock=clock,
        address_resolver=lambda: TEST_ADDRESS,
        logger=logger,
    )
