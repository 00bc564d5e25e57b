"""Command-line entry point against a throwaway database file."""

from __future__ import annotations

import pytest

import main as cli
from parlor import config as config_module
from parlor.config import AppConfig


@pytest.fixture
def app_config(tmp_path, monkeypatch) -> AppConfig:
    config = AppConfig(
        SQLITE_PATH=str(tmp_path / "parlor.db"),
        LOG_FILE="",
        BCRYPT_ROUNDS=4,
        IP_LOOKUP_URL="",
    )
    monkeypatch.setattr(config_module, "_config_instance", config)
    return config


def test_init_seeds_and_reports(app_config, capsys):
    assert cli.main(["init"]) == 0
    assert "3 user(s)" in capsys.readouterr().out


def test_login_status_logout_cycle(app_config, monkeypatch, capsys):
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": "admin123")

    assert cli.main(["login", "admin@parlor.local"]) == 0
    assert "Logged in as Admin User" in capsys.readouterr().out

    cli.main(["status"])
    status = capsys.readouterr().out
    assert "Remote store: offline" in status
    assert "Active session: admin@parlor.local" in status

    cli.main(["logout"])
    cli.main(["logs", "--user", "1"])
    logs = capsys.readouterr().out
    assert "SESSION_CREATE" in logs
    assert "LOGOUT" in logs


def test_login_failure_exit_code(app_config, monkeypatch, capsys):
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": "wrong")

    assert cli.main(["login", "admin@parlor.local"]) == 1
    assert "Invalid email or password" in capsys.readouterr().err


def test_sync_offline_replays_nothing(app_config, capsys):
    assert cli.main(["sync"]) == 0
    assert "Replayed 0 queued write(s)." in capsys.readouterr().out
