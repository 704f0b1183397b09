"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service starts without any environment at all (SQLite file next to
the package, permissive timeouts).  In a production deployment you
should override these via environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Event Registration API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    # Optional static token for administrator API access.  Requests
    # carrying this token in the Authorization header are authenticated
    # as ``admin_static_user_id`` with the admin role.  Use with care.
    admin_static_token: str = os.getenv("ADMIN_STATIC_TOKEN", "")
    admin_static_user_id: str = os.getenv("ADMIN_STATIC_USER_ID", "admin")

    # Path to the SQLite database.  A relative path is resolved against
    # the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "event_registration.db")

    # ``sqlite`` persists registrations in ``database_url``; ``memory``
    # keeps them in process and is only correct for a single worker.
    storage_backend: str = os.getenv("STORAGE_BACKEND", "sqlite")

    # Upper bounds (seconds) on the blocking steps of a registration.
    storage_timeout_seconds: float = float(os.getenv("STORAGE_TIMEOUT_SECONDS", "5"))
    directory_timeout_seconds: float = float(os.getenv("DIRECTORY_TIMEOUT_SECONDS", "5"))
    lock_timeout_seconds: float = float(os.getenv("LOCK_TIMEOUT_SECONDS", "5"))

    # Bounded retry of infrastructure failures inside the service layer.
    transient_retry_attempts: int = int(os.getenv("TRANSIENT_RETRY_ATTEMPTS", "3"))
    transient_retry_backoff_seconds: float = float(os.getenv("TRANSIENT_RETRY_BACKOFF_SECONDS", "0.05"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# must be set before importing this module.
settings = Settings()
