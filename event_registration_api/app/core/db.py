"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), running a block inside an explicit write
transaction (``transaction``) and applying migrations on application
start (``init_db``).  Every helper accepts an optional ``db_path`` so
that tests and alternative deployments can point at their own file;
when omitted the path comes from ``settings.database_url``.

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .config import settings


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: events owned by the directory, registrations, audit trail
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS events (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT,
            start_time TIMESTAMP,
            capacity INTEGER,
            registration_deadline TIMESTAMP,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS registrations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            event_id TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'active',
            created_at TIMESTAMP NOT NULL,
            cancelled_at TIMESTAMP,
            CHECK (status IN ('active', 'cancelled'))
        );

        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT,
            action TEXT NOT NULL,
            object_type TEXT,
            object_id TEXT,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            details TEXT
        );
        """,
    ),
    # Migration 2: lookup indexes and the storage-level uniqueness guard
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_registrations_event_status ON registrations(event_id, status);
        CREATE INDEX IF NOT EXISTS idx_registrations_user_id ON registrations(user_id);
        -- At most one active row per (user, event); cancelled rows are history.
        CREATE UNIQUE INDEX IF NOT EXISTS uq_registrations_active_pair
            ON registrations(user_id, event_id) WHERE status = 'active';
        CREATE INDEX IF NOT EXISTS idx_audit_logs_object ON audit_logs(object_type, object_id);
        """,
    ),
]


def get_database_path(db_path: Optional[str] = None) -> str:
    """Compute the path to the SQLite database file.

    An absolute path is used directly; a relative one is resolved
    against the project root (the directory holding the package).
    """
    db_url = db_path or settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent.parent
    return str((base_dir / db_url).resolve())


def get_connection(
    db_path: Optional[str] = None,
    timeout: Optional[float] = None,
    autocommit: bool = False,
) -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` so columns can be read by
    name.  ``timeout`` bounds how long a statement waits on another
    writer before SQLite raises ``OperationalError("database is
    locked")``.  With ``autocommit`` the connection issues no implicit
    ``BEGIN``; callers then manage transactions with ``transaction``.
    """
    conn = sqlite3.connect(
        get_database_path(db_path),
        timeout=timeout if timeout is not None else settings.storage_timeout_seconds,
        isolation_level=None if autocommit else "",
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_cursor(db_path: Optional[str] = None) -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection(db_path)
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Cursor]:
    """Run a block inside ``BEGIN IMMEDIATE`` on an autocommit connection.

    ``IMMEDIATE`` takes the database write lock up front, so a
    read-then-write sequence inside the block cannot interleave with
    another writer, including writers in other processes.  The block
    is committed on success and rolled back on any exception.
    """
    cursor = conn.cursor()
    cursor.execute("BEGIN IMMEDIATE")
    try:
        yield cursor
    except BaseException:
        cursor.execute("ROLLBACK")
        raise
    else:
        cursor.execute("COMMIT")


def init_db(db_path: Optional[str] = None) -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any migration in
    ``MIGRATIONS`` with a higher version number.
    """
    with get_cursor(db_path) as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                current_version = version
