"""Activity log: bounded FIFO, filtering, session attribution, audit line."""

from __future__ import annotations

import json
import logging

import pytest

from parlor.models.enums import ActivityAction, UserRole
from parlor.models.user import UserProfile
from parlor.services.activity_log import ActivityLogService
from parlor.storage import MemoryKeyValueStore, StorageKey

from tests.conftest import TEST_ADDRESS


@pytest.fixture
def activity_log(logger, clock) -> ActivityLogService:
    return ActivityLogService(MemoryKeyValueStore(), logger, capacity=3, clock=clock)


def test_evicts_oldest_beyond_capacity(activity_log):
    for index in range(5):
        activity_log.append("1", ActivityAction.LOGOUT, f"entry {index}")

    assert [e.detail for e in activity_log.query()] == ["entry 2", "entry 3", "entry 4"]


def test_query_filters_by_user(activity_log):
    activity_log.append("1", ActivityAction.LOGOUT)
    activity_log.append("2", ActivityAction.PASSWORD_CHANGE)
    activity_log.append("1", ActivityAction.SESSION_CREATE)

    assert [e.action for e in activity_log.query("1")] == [
        ActivityAction.LOGOUT,
        ActivityAction.SESSION_CREATE,
    ]
    assert len(activity_log.query()) == 3
    assert activity_log.query("missing") == []


def test_without_session_address_is_unknown(activity_log, clock):
    entry = activity_log.append("1", ActivityAction.LOGOUT)

    assert entry.network_address == "unknown"
    assert entry.client_descriptor == "unknown"
    assert entry.timestamp == clock.now


def test_entries_carry_active_session_address(services):
    profile = UserProfile(id="1", email="a@x.com", name="A", role=UserRole.ADMIN)
    services["session_manager"].create("1", profile=profile)

    entry = services["activity_log"].append("1", ActivityAction.PASSWORD_CHANGE, "x")

    assert entry.network_address == TEST_ADDRESS


def test_entries_persist_in_bucket(services, store):
    services["activity_log"].append("7", ActivityAction.USER_DELETE, "gone")

    stored = store.get(StorageKey.ACTIVITY_LOG)
    assert stored[-1]["user_id"] == "7"
    assert stored[-1]["action"] == "USER_DELETE"


def test_emits_audit_log_line(activity_log, caplog):
    with caplog.at_level(logging.INFO, logger="parlor.tests"):
        activity_log.append("1", ActivityAction.LOGOUT, "bye")

    audit = [r.getMessage() for r in caplog.records if r.getMessage().startswith("AUDIT: ")]
    assert len(audit) == 1
    payload = json.loads(audit[0][len("AUDIT: "):])
    assert payload["user_id"] == "1"
    assert payload["detail"] == "bye"
