"""
Application Configuration.

Pydantic Settings model for the Parlor POS core.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase (remote store) ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")
    REMOTE_TIMEOUT_S: float = 10.0

    # --- Local store ---
    SQLITE_PATH: str = "parlor_local.db"

    # --- Logging ---
    LOG_FILE: str = "parlor.log"  # Empty string disables the file handler
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    # --- Credentials ---
    BCRYPT_ROUNDS: int = 10
    PASSWORD_HISTORY_DEPTH: int = 5
    MIN_RESET_PASSWORD_LENGTH: int = 6

    # --- Login throttling ---
    LOGIN_MAX_FAILURES: int = 5
    LOGIN_WINDOW_MINUTES: int = 30
    LOGIN_ATTEMPT_RETENTION: int = 100

    # --- Sessions & activity log ---
    SESSION_TTL_HOURS: int = 8
    ACTIVITY_LOG_CAPACITY: int = 1000
    IP_LOOKUP_URL: str = "https://api.ipify.org?format=json"
    IP_LOOKUP_TIMEOUT_S: float = 3.0

    # --- Outbox replay ---
    SYNC_BASE_INTERVAL_S: float = 30.0
    SYNC_MAX_INTERVAL_S: float = 300.0
    SYNC_BATCH_SIZE: int = 50
    SYNC_MAX_RETRIES: int = 5

    # --- First-run seeding ---
    SEED_EMAIL_DOMAIN: str = "parlor.local"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing.
        This validator logs a warning so operators know the app is running
        with placeholder values.
        """
        _log = logging.getLogger("parlor.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty; remote store is disabled. "
                "All reads and writes will use the local store."
            )

        return self

    @property
    def seed_accounts(self) -> list[dict[str, str]]:
        """Default demo accounts created on first run."""
        domain = self.SEED_EMAIL_DOMAIN
        return [
            {
                "id": "1",
                "name": "Admin User",
                "email": f"admin@{domain}",
                "role": "admin",
                "password": "admin123",
            },
            {
                "id": "2",
                "name": "Store Keeper",
                "email": f"storekeeper@{domain}",
                "role": "storekeeper",
                "password": "store123",
            },
            {
                "id": "3",
                "name": "Attendant",
                "email": f"attendant@{domain}",
                "role": "attendant",
                "password": "attend123",
            },
        ]


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern to avoid the lock overhead on the fast
    path while remaining thread-safe during first initialisation.

    Prefer direct constructor injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
