"""
Parlor POS Core Command-Line Entry Point.

Bootstraps the dependency graph via constructor injection, initialises
the local SQLite schema and storage buckets, then runs one maintenance
command.  Every subsystem is wired here with no module-level globals.

Usage::

    python main.py init
    python main.py login admin@parlor.local
    python main.py logs --user 1
    python main.py sync
    python main.py status
"""

from __future__ import annotations

import argparse
import atexit
import getpass
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from parlor.config import AppConfig, get_config
from parlor.database import DatabaseManager
from parlor.logger import StructuredLogger, get_logger
from parlor.schema import initialize_schema
from parlor.seed import initialize_storage
from parlor.services import ServiceContainer, create_services
from parlor.storage import SQLiteKeyValueStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parlor",
        description="Maintenance commands for the Parlor POS core.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init", help="Create the local schema and seed default data.")

    login = commands.add_parser("login", help="Authenticate and open a session.")
    login.add_argument("email")

    commands.add_parser("logout", help="Close the active session.")

    logs = commands.add_parser("logs", help="Print the activity log.")
    logs.add_argument("--user", dest="user_id", default=None, help="Only this user id.")

    sync = commands.add_parser("sync", help="Replay queued local-only writes.")
    sync.add_argument(
        "--follow",
        action="store_true",
        help="Keep replaying in the background until interrupted.",
    )

    commands.add_parser("status", help="Show connectivity, outbox and session state.")
    return parser


def bootstrap(config: AppConfig) -> tuple[DatabaseManager, ServiceContainer]:
    """Open the stores, apply the schema, seed, and wire the services."""
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.SQLITE_PATH),
        logger=StructuredLogger(name="database"),
        timeout_s=config.REMOTE_TIMEOUT_S,
    )
    # close() is idempotent; this covers exits that skip the finally below.
    atexit.register(db.close)

    initialize_schema(db.sqlite, StructuredLogger(name="schema"))

    store = SQLiteKeyValueStore(db)
    services = create_services(db=db, store=store, config=config)
    initialize_storage(
        store=store,
        credentials=services["credential_store"],
        activity_log=services["activity_log"],
        config=config,
        logger=get_logger("seed"),
    )
    return db, services


def _cmd_init(services: ServiceContainer, args: argparse.Namespace) -> int:
    users = services["user_service"].list_users().data or []
    print(f"Local storage ready: {len(users)} user(s).")
    return 0


def _cmd_login(services: ServiceContainer, args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    result = services["auth_service"].login(args.email, password)
    if not result.success or result.user is None:
        print(f"Login failed: {result.error_message}", file=sys.stderr)
        return 1
    print(f"Logged in as {result.user.name} ({result.user.role}).")
    return 0


def _cmd_logout(services: ServiceContainer, args: argparse.Namespace) -> int:
    services["auth_service"].logout()
    print("Logged out.")
    return 0


def _cmd_logs(services: ServiceContainer, args: argparse.Namespace) -> int:
    for entry in services["activity_log"].query(args.user_id):
        print(
            f"{entry.timestamp.isoformat()}  {entry.user_id:<12} "
            f"{entry.action:<22} {entry.detail} [{entry.network_address}]"
        )
    return 0


def _cmd_sync(services: ServiceContainer, args: argparse.Namespace) -> int:
    worker = services["sync_worker"]
    if not args.follow:
        synced = worker.run_once()
        print(f"Replayed {synced} queued write(s).")
        return 0

    worker.start()
    try:
        while worker.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        worker.stop()
    return 0


def _cmd_status(
    services: ServiceContainer,
    args: argparse.Namespace,
    db: DatabaseManager,
) -> int:
    print(f"Remote store: {'configured' if db.is_online else 'offline'}")
    print(f"Pending outbox rows: {db.get_pending_sync_count()}")
    user = services["session_manager"].current_user()
    print(f"Active session: {user.email if user else 'none'}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Application entry point: wire dependencies and run one command."""
    args = build_parser().parse_args(argv)

    logger: StructuredLogger = get_logger("main")
    config = get_config()
    db, services = bootstrap(config)

    try:
        if args.command == "init":
            return _cmd_init(services, args)
        if args.command == "login":
            return _cmd_login(services, args)
        if args.command == "logout":
            return _cmd_logout(services, args)
        if args.command == "logs":
            return _cmd_logs(services, args)
        if args.command == "sync":
            return _cmd_sync(services, args)
        return _cmd_status(services, args, db)
    finally:
        db.close()
        logger.info("Parlor shut down.")


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
