"""
Main entrypoint for the Event Registration API.

This module assembles the FastAPI application: it sets up logging,
wires the registration core (store, event directory, ledger, service)
onto ``app.state``, installs the error handler and includes the
versioned routers.  The app is instantiated at import time as ``app``
so it can be served directly, e.g.::

    uvicorn event_registration_api.app.main:app --reload
"""

import logging
from typing import Optional

from fastapi import FastAPI

from .api.v1.router import router as v1_router
from .core.config import Settings, settings as default_settings
from .core.db import init_db
from .core.errors import RegistrationError, registration_error_handler
from .core.locks import KeyedLock
from .core.logging_config import setup_logging
from .core.security import Authenticator, BearerTokenAuthenticator
from .services.audit_service import AuditService
from .services.event_directory import EventDirectory, SQLiteEventDirectory
from .services.event_service import EventService
from .services.registration_ledger import RegistrationLedger
from .services.registration_service import RegistrationService
from .services.registration_store import (
    InMemoryRegistrationStore,
    RegistrationStore,
    SQLiteRegistrationStore,
)


logger = logging.getLogger(__name__)


def build_store(config: Settings) -> RegistrationStore:
    backend = config.storage_backend.lower()
    if backend == "memory":
        logger.warning("Using in-memory registration store; only safe with a single worker")
        return InMemoryRegistrationStore()
    if backend != "sqlite":
        raise ValueError(f"Unknown STORAGE_BACKEND {config.storage_backend!r}")
    return SQLiteRegistrationStore(config.database_url, timeout=config.storage_timeout_seconds)


def create_app(
    config: Optional[Settings] = None,
    store: Optional[RegistrationStore] = None,
    directory: Optional[EventDirectory] = None,
    authenticator: Optional[Authenticator] = None,
) -> FastAPI:
    """Create and configure a FastAPI application.

    Parameters
    ----------
    config : Optional[Settings]
        Settings to use; defaults to the module-level ``settings``.
    store, directory, authenticator : optional
        Collaborators to inject instead of the ones derived from
        ``config``.  Tests pass in-memory variants here.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    config = config or default_settings
    setup_logging(config.log_level, config.log_file or None)

    db_path = config.database_url
    ledger = RegistrationLedger(
        store=store or build_store(config),
        directory=directory or SQLiteEventDirectory(db_path),
        locks=KeyedLock(),
        storage_timeout=config.storage_timeout_seconds,
        directory_timeout=config.directory_timeout_seconds,
        lock_timeout=config.lock_timeout_seconds,
    )
    audit = AuditService(db_path)

    app = FastAPI(title=config.project_name, version=config.api_version, debug=config.debug)
    app.state.settings = config
    app.state.authenticator = authenticator or BearerTokenAuthenticator(
        secret_key=config.secret_key,
        static_admin_token=config.admin_static_token,
        static_admin_user_id=config.admin_static_user_id,
    )
    app.state.ledger = ledger
    app.state.audit_service = audit
    app.state.registration_service = RegistrationService(
        ledger,
        audit=audit,
        max_attempts=config.transient_retry_attempts,
        backoff_seconds=config.transient_retry_backoff_seconds,
    )
    app.state.event_service = EventService(ledger, db_path=db_path, audit=audit)

    app.add_exception_handler(RegistrationError, registration_error_handler)
    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    @app.on_event("startup")
    async def startup_event() -> None:
        # Creates the database file if needed and brings the schema up to date.
        init_db(db_path)
        logger.info("Database ready at %s", db_path)

    return app


# Create the application instance at import time so that tools such as
# uvicorn can discover it without calling create_app manually.
app = create_app()
