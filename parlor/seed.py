"""
First-Run Seeding.

:func:`initialize_storage` runs on every start and only writes what is
missing, so calling it repeatedly is safe:

1. Users stored without a ``status`` are migrated to ``active``.
2. Demo accounts are created when the users bucket does not exist.
3. The default product catalogue is created when the products bucket
   does not exist.
4. Empty sales / inventory / assignments buckets are created when absent.
"""

from __future__ import annotations

from decimal import Decimal

from parlor.config import AppConfig
from parlor.logger import StructuredLogger
from parlor.models.enums import ActivityAction, UserRole, UserStatus
from parlor.models.product import Product
from parlor.models.user import User
from parlor.services.activity_log import ActivityLogService
from parlor.services.credentials import CredentialStore
from parlor.storage import JsonValue, KeyValueStore, StorageKey
from parlor.utils.time_utils import Clock, utcnow

__all__ = ["DEFAULT_PRODUCTS", "initialize_storage"]

# (id, name, category, quantity, reorder_level, unit_price, quantity_per_crate)
DEFAULT_PRODUCTS: tuple[tuple[str, str, str, int, int, str, int], ...] = (
    ("1", "Heineken", "Beer", 300, 24, "1200", 12),
    ("6", "Heineken (small)", "Beer", 1200, 24, "1000", 24),
    ("7", "Life", "Beer", 300, 24, "1000", 12),
    ("2", "Tiger", "Beer", 240, 24, "1000", 24),
    ("3", "Guinness (medium stout)", "Beer", 80, 30, "1000", 12),
    ("4", "Pepsi", "Soft Drink", 200, 60, "500", 24),
)

_EMPTY_BUCKETS: tuple[StorageKey, ...] = (
    StorageKey.SALES,
    StorageKey.INVENTORY,
    StorageKey.ASSIGNMENTS,
)


def initialize_storage(
    store: KeyValueStore,
    credentials: CredentialStore,
    activity_log: ActivityLogService,
    config: AppConfig,
    logger: StructuredLogger,
    clock: Clock = utcnow,
) -> None:
    """Bring the local buckets to a usable state.  Idempotent."""
    _migrate_user_status(store, activity_log, logger)

    if not store.contains(StorageKey.USERS):
        _seed_users(store, credentials, config, logger, clock)

    if not store.contains(StorageKey.PRODUCTS):
        _seed_products(store, logger, clock)

    for key in _EMPTY_BUCKETS:
        if not store.contains(key):
            store.set(key, [])


def _migrate_user_status(
    store: KeyValueStore,
    activity_log: ActivityLogService,
    logger: StructuredLogger,
) -> None:
    raw = store.get(StorageKey.USERS)
    if not isinstance(raw, list):
        return

    migrated_ids: list[str] = []
    records: list[JsonValue] = []
    for record in raw:
        if isinstance(record, dict) and not record.get("status"):
            record = {**record, "status": str(UserStatus.ACTIVE)}
            migrated_ids.append(str(record.get("id")))
        records.append(record)

    if not migrated_ids:
        return

    store.set(StorageKey.USERS, records)
    logger.info("Migrated %d user(s) to status 'active'.", len(migrated_ids))
    for user_id in migrated_ids:
        activity_log.append(
            user_id,
            ActivityAction.USER_MIGRATION,
            "Status set to active by migration",
        )


def _seed_users(
    store: KeyValueStore,
    credentials: CredentialStore,
    config: AppConfig,
    logger: StructuredLogger,
    clock: Clock,
) -> None:
    now = clock()
    users = [
        User(
            id=account["id"],
            name=account["name"],
            email=account["email"],
            role=UserRole(account["role"]),
            password=credentials.hash(account["password"]),
            created_at=now,
            status=UserStatus.ACTIVE,
        )
        for account in config.seed_accounts
    ]
    store.set(StorageKey.USERS, [u.model_dump(mode="json") for u in users])
    logger.info(
        "Seeded %d default account(s).",
        len(users),
        extra={"event": "SEED_USERS"},
    )


def _seed_products(
    store: KeyValueStore,
    logger: StructuredLogger,
    clock: Clock,
) -> None:
    now = clock()
    products = [
        Product(
            id=product_id,
            name=name,
            category=category,
            quantity=quantity,
            reorder_level=reorder_level,
            unit_price=Decimal(unit_price),
            quantity_per_crate=per_crate,
            last_restocked=now,
        )
        for product_id, name, category, quantity, reorder_level, unit_price, per_crate
        in DEFAULT_PRODUCTS
    ]
    store.set(StorageKey.PRODUCTS, [p.model_dump(mode="json") for p in products])
    logger.info(
        "Seeded %d default product(s).",
        len(products),
        extra={"event": "SEED_PRODUCTS"},
    )
