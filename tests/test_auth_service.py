"""End-to-end auth flows through AuthService."""

from __future__ import annotations

import pytest

from parlor.models.auth_models import AuthErrorCode
from parlor.models.enums import ActivityAction, UserRole
from parlor.models.user import User, UserProfile
from parlor.storage import StorageKey


@pytest.fixture
def accounts(services) -> dict[str, UserProfile]:
    users = services["user_service"]
    created = {
        "admin": users.add_user("Admin", "admin@x.com", "admin", "admin123"),
        "other_admin": users.add_user("Second Admin", "boss@x.com", "admin", "boss1234"),
        "attendant": users.add_user("Att", "att@x.com", "attendant", "attend123"),
        "keeper": users.add_user("Keeper", "keeper@x.com", "storekeeper", "store123"),
    }
    assert all(result.success for result in created.values())
    return {key: result.data for key, result in created.items()}


@pytest.fixture
def auth(services):
    return services["auth_service"]


# ==================== Login ====================


def test_login_success_opens_session(auth, services, accounts):
    result = auth.login("admin@x.com", "admin123")

    assert result.success
    assert result.error_code is None
    assert result.user.id == accounts["admin"].id
    assert "password" not in result.user.model_dump()
    assert services["session_manager"].current_user().email == "admin@x.com"


def test_login_normalizes_email(auth, accounts):
    assert auth.login("  ADMIN@X.com ", "admin123").success


@pytest.mark.parametrize("email, password", [
    ("admin@x.com", "wrong-password"),
    ("nobody@x.com", "admin123"),
])
def test_bad_credentials_share_one_message(auth, services, accounts, email, password):
    result = auth.login(email, password)

    assert not result.success
    assert result.error_code == AuthErrorCode.INVALID_CREDENTIALS
    assert result.error_message == "Invalid email or password"
    assert services["login_throttle"].recent_failures(email) == 1
    assert not services["session_manager"].is_authenticated


def test_lockout_after_five_failures_then_recovery(auth, clock, accounts):
    for _ in range(5):
        assert auth.login("admin@x.com", "wrong").error_code == AuthErrorCode.INVALID_CREDENTIALS

    locked = auth.login("admin@x.com", "admin123")
    assert locked.error_code == AuthErrorCode.TOO_MANY_ATTEMPTS
    assert locked.error_message == (
        "Too many failed attempts. Please try again in 30 minutes."
    )

    clock.advance(minutes=31)
    assert auth.login("admin@x.com", "admin123").success


def test_lockout_applies_to_unknown_identities(auth, accounts):
    for _ in range(5):
        auth.login("ghost@x.com", "guess")

    assert auth.login("ghost@x.com", "guess").error_code == AuthErrorCode.TOO_MANY_ATTEMPTS


def test_suspended_account_cannot_log_in(auth, services, accounts):
    services["user_service"].set_user_status(accounts["attendant"].id, "suspended")

    result = auth.login("att@x.com", "attend123")

    assert result.error_code == AuthErrorCode.ACCOUNT_SUSPENDED
    assert result.error_message == (
        "This account has been suspended. Please contact the administrator."
    )


def test_frozen_account_can_still_log_in(auth, services, accounts):
    services["user_service"].set_user_status(accounts["attendant"].id, "frozen")
    assert auth.login("att@x.com", "attend123").success


def test_first_password_becomes_credential_for_bootstrap_user(auth, services):
    repo = services["user_repository"]
    repo.add(User(id="9", email="new@x.com", name="New", role=UserRole.ATTENDANT))

    assert auth.login("new@x.com", "first-pass").success

    stored = repo.get_by_id("9")
    assert stored.has_credential
    assert services["credential_store"].verify("first-pass", stored.password)
    assert not auth.login("new@x.com", "another-pass").success


# ==================== Password change ====================


def test_change_password_requires_new_login(auth, services, accounts):
    attendant_id = accounts["attendant"].id
    auth.login("att@x.com", "attend123")

    result = auth.change_password(attendant_id, "attend123", "fresh-pass1")

    assert result.success
    assert not services["session_manager"].is_authenticated
    assert not auth.login("att@x.com", "attend123").success
    assert auth.login("att@x.com", "fresh-pass1").success
    actions = [e.action for e in services["activity_log"].query(attendant_id)]
    assert ActivityAction.PASSWORD_CHANGE in actions


def test_change_password_rejects_wrong_current(auth, accounts):
    result = auth.change_password(accounts["attendant"].id, "nope", "fresh-pass1")

    assert result.error_code == AuthErrorCode.INVALID_CREDENTIALS
    assert result.error_message == "Current password is incorrect"


def test_change_password_unknown_user(auth, accounts):
    result = auth.change_password("missing", "attend123", "fresh-pass1")
    assert result.error_code == AuthErrorCode.USER_NOT_FOUND


def test_change_password_rejects_empty_new_password(auth, accounts):
    result = auth.change_password(accounts["attendant"].id, "attend123", "")
    assert result.error_code == AuthErrorCode.INVALID_INPUT


def test_last_five_passwords_cannot_be_reused(auth, services, accounts):
    user_id = accounts["attendant"].id
    current = "attend123"
    for index in range(1, 6):
        new = f"secret-{index}"
        assert auth.change_password(user_id, current, new).success
        current = new

    reused = auth.change_password(user_id, current, "secret-1")
    assert reused.error_code == AuthErrorCode.PASSWORD_REUSED

    assert auth.change_password(user_id, current, "secret-6").success
    # secret-1 has now dropped out of the last five.
    assert auth.change_password(user_id, "secret-6", "secret-1").success
    assert len(services["credential_store"].history_for(user_id)) == 5


# ==================== Admin reset ====================


@pytest.mark.parametrize("actor, target, message", [
    ("attendant", "attendant", "Only admins"),
    ("keeper", "attendant", "Only admins"),
    ("missing", "attendant", "Only admins"),
    ("attendant", "admin", "Only admins"),
    ("admin", "other_admin", "Cannot reset another admin"),
])
def test_reset_refused_leaves_credential_unchanged(
    auth, services, accounts, actor, target, message
):
    repo = services["user_repository"]
    actor_id = accounts[actor].id if actor in accounts else actor
    target_id = accounts[target].id
    old_hash = repo.get_by_id(target_id).password

    result = auth.admin_reset_password(actor_id, target_id, "newpass123")

    assert result.error_code == AuthErrorCode.FORBIDDEN
    assert message in result.error_message
    assert repo.get_by_id(target_id).password == old_hash


def test_admin_resets_attendant_password(auth, services, accounts):
    repo = services["user_repository"]
    credentials = services["credential_store"]
    target_id = accounts["attendant"].id
    old_hash = repo.get_by_id(target_id).password

    result = auth.admin_reset_password(accounts["admin"].id, target_id, "newpass123")

    assert result.success
    new_hash = repo.get_by_id(target_id).password
    assert new_hash != old_hash
    assert credentials.verify("newpass123", new_hash)
    assert not credentials.verify("attend123", new_hash)

    entries = services["activity_log"].query(accounts["admin"].id)
    reset = [e for e in entries if e.action == ActivityAction.ADMIN_RESET_PASSWORD]
    assert reset[0].detail == "Admin admin@x.com reset password for att@x.com"


def test_admin_reset_enforces_minimum_length(auth, accounts):
    result = auth.admin_reset_password(accounts["admin"].id, accounts["attendant"].id, "abc")

    assert result.error_code == AuthErrorCode.WEAK_PASSWORD
    assert result.error_message == "Password must be at least 6 characters long"


def test_admin_reset_unknown_target(auth, accounts):
    result = auth.admin_reset_password(accounts["admin"].id, "missing", "newpass123")
    assert result.error_code == AuthErrorCode.USER_NOT_FOUND


def test_admin_reset_ends_target_session_only(auth, services, accounts):
    sessions = services["session_manager"]

    auth.login("att@x.com", "attend123")
    auth.admin_reset_password(accounts["admin"].id, accounts["attendant"].id, "newpass123")
    assert not sessions.is_authenticated

    auth.login("admin@x.com", "admin123")
    auth.admin_reset_password(accounts["admin"].id, accounts["attendant"].id, "newpass456")
    assert sessions.current_user().id == accounts["admin"].id


# ==================== Logout ====================


def test_logout_clears_session_and_logs(auth, services, store, accounts):
    auth.login("admin@x.com", "admin123")

    auth.logout()

    assert not store.contains(StorageKey.SESSION)
    assert not store.contains(StorageKey.CURRENT_USER)
    actions = [e.action for e in services["activity_log"].query(accounts["admin"].id)]
    assert actions[-1] == ActivityAction.LOGOUT


def test_logout_without_session_is_harmless(auth):
    auth.logout()
