"""
Business Logic Services Package.

Services depend on the repository layer for data access and on the
session manager for user context.

The ``create_services()`` factory wires every repository and service
together, returning a typed dict that the application layer (CLI
commands) can consume without knowing the internal dependency graph.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, TypedDict

from parlor.auth import SessionManager
from parlor.config import AppConfig
from parlor.database import DatabaseManager
from parlor.logger import StructuredLogger, get_logger
from parlor.repositories.assignment_repository import AssignmentRepository
from parlor.repositories.inventory_repository import InventoryRepository
from parlor.repositories.product_repository import ProductRepository
from parlor.repositories.sale_repository import SaleRepository
from parlor.repositories.user_repository import UserRepository
from parlor.services.activity_log import ActivityLogService
from parlor.services.auth_service import AuthService
from parlor.services.credentials import CredentialStore
from parlor.services.login_throttle import LoginThrottle
from parlor.services.sync_worker import SyncWorkerService
from parlor.services.users import UserService
from parlor.storage import KeyValueStore
from parlor.utils.client_info import AddressResolver, make_address_resolver
from parlor.utils.time_utils import Clock, utcnow


class ServiceContainer(TypedDict):
    """Typed container for all application services and repositories."""

    # --- Data shim ---
    user_repository: UserRepository
    product_repository: ProductRepository
    sale_repository: SaleRepository
    assignment_repository: AssignmentRepository
    inventory_repository: InventoryRepository

    # --- Credentials & sessions ---
    credential_store: CredentialStore
    login_throttle: LoginThrottle
    activity_log: ActivityLogService
    session_manager: SessionManager
    auth_service: AuthService

    # --- Administration & infrastructure ---
    user_service: UserService
    sync_worker: SyncWorkerService


def create_services(
    db: DatabaseManager,
    store: KeyValueStore,
    config: AppConfig,
    clock: Clock = utcnow,
    address_resolver: Optional[AddressResolver] = None,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the service layer.  The
    application entry-point calls this once at startup.

    Args:
        db: Initialised DatabaseManager with SQLite (and optionally Supabase) ready.
        store: Key-value store for the local buckets.
        config: Application configuration.
        clock: Time source shared by every time-dependent component.
        address_resolver: Network-address lookup for new sessions.
            Defaults to an HTTP lookup against ``IP_LOOKUP_URL``.
        logger: Logger shared by all services.  Defaults to ``services``.

    Returns:
        ServiceContainer mapping service names to fully-wired instances.
    """
    logger = logger or get_logger("services")
    if address_resolver is None:
        address_resolver = make_address_resolver(
            config.IP_LOOKUP_URL, config.IP_LOOKUP_TIMEOUT_S, logger,
        )

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    user_repo = UserRepository(db=db, store=store, logger=logger)
    product_repo = ProductRepository(db=db, store=store, logger=logger)
    sale_repo = SaleRepository(db=db, store=store, logger=logger)
    assignment_repo = AssignmentRepository(db=db, store=store, logger=logger)
    inventory_repo = InventoryRepository(db=db, store=store, logger=logger)

    # ------------------------------------------------------------------
    # 2. Leaf services (no service dependencies)
    # ------------------------------------------------------------------
    credential_store = CredentialStore(
        store=store,
        logger=logger,
        rounds=config.BCRYPT_ROUNDS,
        history_depth=config.PASSWORD_HISTORY_DEPTH,
        clock=clock,
    )
    login_throttle = LoginThrottle(
        store=store,
        logger=logger,
        max_failures=config.LOGIN_MAX_FAILURES,
        window=timedelta(minutes=config.LOGIN_WINDOW_MINUTES),
        retention=config.LOGIN_ATTEMPT_RETENTION,
        clock=clock,
    )
    activity_log = ActivityLogService(
        store=store,
        logger=logger,
        capacity=config.ACTIVITY_LOG_CAPACITY,
        clock=clock,
    )
    session_manager = SessionManager(
        store=store,
        activity_log=activity_log,
        logger=logger,
        ttl=timedelta(hours=config.SESSION_TTL_HOURS),
        clock=clock,
        address_resolver=address_resolver,
    )
    sync_worker = SyncWorkerService(db=db, config=config, logger=logger)

    # ------------------------------------------------------------------
    # 3. Orchestration services (depend on other services)
    # ------------------------------------------------------------------
    auth_service = AuthService(
        users=user_repo,
        store=store,
        credentials=credential_store,
        throttle=login_throttle,
        sessions=session_manager,
        activity_log=activity_log,
        logger=logger,
        min_reset_password_length=config.MIN_RESET_PASSWORD_LENGTH,
    )
    user_service = UserService(
        repo=user_repo,
        credentials=credential_store,
        activity_log=activity_log,
        logger=logger,
        clock=clock,
    )

    return ServiceContainer(
        user_repository=user_repo,
        product_repository=product_repo,
        sale_repository=sale_repo,
        assignment_repository=assignment_repo,
        inventory_repository=inventory_repo,
        credential_store=credential_store,
        login_throttle=login_throttle,
        activity_log=activity_log,
        session_manager=session_manager,
        auth_service=auth_service,
        user_service=user_service,
        sync_worker=sync_worker,
    )
