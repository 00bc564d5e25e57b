"""Login-attempt throttle: sliding window, lockout minutes, retention."""

from __future__ import annotations

from datetime import timedelta

import pytest

from parlor.services.login_throttle import LoginThrottle
from parlor.storage import MemoryKeyValueStore, StorageKey


@pytest.fixture
def throttle(logger, clock) -> LoginThrottle:
    return LoginThrottle(MemoryKeyValueStore(), logger, clock=clock)


def test_counts_only_failures_for_identity(throttle):
    throttle.record_attempt("a@x.com", successful=False)
    throttle.record_attempt("a@x.com", successful=True)
    throttle.record_attempt("b@x.com", successful=False)

    assert throttle.recent_failures("a@x.com") == 1


def test_identity_is_normalized(throttle):
    throttle.record_attempt("  A@X.com ", successful=False)
    assert throttle.recent_failures("a@x.com") == 1


def test_failures_leave_window(throttle, clock):
    throttle.record_attempt("a@x.com", successful=False)
    clock.advance(minutes=29, seconds=59)
    assert throttle.recent_failures("a@x.com") == 1
    clock.advance(seconds=1)
    assert throttle.recent_failures("a@x.com") == 0


def test_locked_after_five_failures(throttle):
    for _ in range(4):
        throttle.record_attempt("a@x.com", successful=False)
    assert throttle.lockout_remaining("a@x.com") == (False, 0)

    throttle.record_attempt("a@x.com", successful=False)
    assert throttle.lockout_remaining("a@x.com") == (True, 30)


def test_lockout_minutes_round_up_from_last_attempt(throttle, clock):
    for _ in range(5):
        throttle.record_attempt("a@x.com", successful=False)
        clock.advance(minutes=1)
    clock.advance(seconds=30)

    # 1.5 minutes since the last attempt leaves 28.5 minutes.
    assert throttle.lockout_remaining("a@x.com") == (True, 29)


def test_successful_attempt_does_not_clear_lockout(throttle):
    for _ in range(5):
        throttle.record_attempt("a@x.com", successful=False)
    throttle.record_attempt("a@x.com", successful=True)

    locked, _ = throttle.lockout_remaining("a@x.com")
    assert locked


def test_retains_most_recent_hundred(logger, clock):
    store = MemoryKeyValueStore()
    bounded = LoginThrottle(store, logger, clock=clock, window=timedelta(days=1))
    for index in range(105):
        bounded.record_attempt(f"user{index}@x.com", successful=False)

    stored = store.get(StorageKey.LOGIN_ATTEMPTS)
    assert len(stored) == 100
    assert stored[0]["identity"] == "user5@x.com"
    assert bounded.recent_failures("user0@x.com") == 0
