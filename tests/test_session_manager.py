"""Session lifecycle: creation, lazy absolute expiry, atomic clear."""

from __future__ import annotations

from parlor.auth import SessionManager
from parlor.models.enums import ActivityAction, UserRole
from parlor.models.user import UserProfile
from parlor.services.activity_log import ActivityLogService
from parlor.storage import MemoryKeyValueStore, StorageKey
from parlor.utils.client_info import LOCAL_ADDRESS

from tests.conftest import TEST_ADDRESS


def _profile(user_id: str = "1") -> UserProfile:
    return UserProfile(id=user_id, email="admin@x.com", name="Admin", role=UserRole.ADMIN)


def test_create_stores_session_and_current_user(services, store, clock):
    sessions = services["session_manager"]
    session = sessions.create("1", profile=_profile())

    assert len(session.token) == 64
    assert (session.expires_at - clock.now).total_seconds() == 8 * 3600
    assert session.network_address == TEST_ADDRESS
    assert store.get(StorageKey.SESSION)["token"] == session.token
    assert sessions.current_user().id == "1"
    assert sessions.is_authenticated


def test_each_session_gets_a_fresh_token(services):
    sessions = services["session_manager"]
    first = sessions.create("1", profile=_profile())
    second = sessions.create("1", profile=_profile())
    assert first.token != second.token
    assert sessions.peek().token == second.token


def test_session_valid_until_expiry_instant(services, clock):
    sessions = services["session_manager"]
    sessions.create("1", profile=_profile())

    clock.advance(hours=8)
    assert sessions.current() is not None


def test_expired_session_is_cleared_on_read(services, store, clock):
    sessions = services["session_manager"]
    sessions.create("1", profile=_profile())

    clock.advance(hours=8, seconds=1)

    assert sessions.current() is None
    assert not store.contains(StorageKey.SESSION)
    assert not store.contains(StorageKey.CURRENT_USER)
    assert sessions.current_user() is None


def test_activity_does_not_extend_expiry(services, clock):
    sessions = services["session_manager"]
    created = sessions.create("1", profile=_profile())

    clock.advance(hours=7)
    touched = sessions.current()
    assert touched.last_activity == clock.now
    assert touched.expires_at == created.expires_at

    clock.advance(hours=1, seconds=1)
    assert sessions.current() is None


def test_peek_does_not_touch(services, clock):
    sessions = services["session_manager"]
    created = sessions.create("1", profile=_profile())
    clock.advance(minutes=5)

    assert sessions.peek().last_activity == created.last_activity


def test_clear_removes_both_keys(services, store):
    sessions = services["session_manager"]
    sessions.create("1", profile=_profile())

    sessions.clear()

    assert not store.contains(StorageKey.SESSION)
    assert not store.contains(StorageKey.CURRENT_USER)
    assert not sessions.is_authenticated


def test_create_without_profile_drops_stale_current_user(services, store):
    sessions = services["session_manager"]
    sessions.create("1", profile=_profile())
    sessions.create("2")

    assert not store.contains(StorageKey.CURRENT_USER)
    assert sessions.current_user() is None


def test_create_logs_session_create(services):
    services["session_manager"].create("1", profile=_profile())

    entries = services["activity_log"].query("1")
    assert [e.action for e in entries] == [ActivityAction.SESSION_CREATE]
    assert entries[0].detail == f"New session created from {TEST_ADDRESS}"
    assert entries[0].network_address == TEST_ADDRESS


def test_failing_address_resolver_falls_back_to_local(logger, clock):
    def _unreachable() -> str:
        raise OSError("no network")

    store = MemoryKeyValueStore()
    activity_log = ActivityLogService(store, logger, clock=clock)
    sessions = SessionManager(
        store,
        activity_log,
        logger,
        clock=clock,
        address_resolver=_unreachable,
        client_descriptor=lambda: "test-host",
    )

    session = sessions.create("1")

    assert session.network_address == LOCAL_ADDRESS
    assert session.client_descriptor == "test-host"


def test_malformed_session_record_is_discarded(services, store):
    store.set(StorageKey.SESSION, {"user_id": "1"})

    assert services["session_manager"].peek() is None
    assert not store.contains(StorageKey.SESSION)


def test_naive_stored_timestamps_are_read_as_utc(services, store):
    sessions = services["session_manager"]
    sessions.create("1")
    raw = store.get(StorageKey.SESSION)
    raw["expires_at"] = "2026-03-01T20:00:00"
    store.set(StorageKey.SESSION, raw)

    session = sessions.peek()

    assert session is not None
    assert session.expires_at.utcoffset().total_seconds() == 0
