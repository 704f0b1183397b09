"""Shared fixtures for the event registration test suite."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from event_registration_api.app.core.db import init_db
from event_registration_api.app.core.security import Identity, Role
from event_registration_api.app.services.event_directory import InMemoryEventDirectory
from event_registration_api.app.services.registration_ledger import RegistrationLedger
from event_registration_api.app.services.registration_store import (
    InMemoryRegistrationStore,
    SQLiteRegistrationStore,
)


FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

@pytest.fixture
def db_path(tmp_path) -> str:
    """Return a migrated SQLite database file unique to the test."""
    path = str(tmp_path / "registrations.db")
    init_db(path)
    return path


@pytest.fixture
def sqlite_store(db_path) -> SQLiteRegistrationStore:
    return SQLiteRegistrationStore(db_path, timeout=5)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Run the test once against each store implementation."""
    if request.param == "memory":
        return InMemoryRegistrationStore()
    path = str(tmp_path / "parametrized.db")
    init_db(path)
    return SQLiteRegistrationStore(path, timeout=5)


# ---------------------------------------------------------------------------
# Directory and ledger
# ---------------------------------------------------------------------------

@pytest.fixture
def directory() -> InMemoryEventDirectory:
    """Directory with a capacity-2 event ``E1`` and an unlimited event ``OPEN``."""
    directory = InMemoryEventDirectory()
    directory.add_event("E1", capacity=2)
    directory.add_event("OPEN", capacity=None)
    return directory


@pytest.fixture
def ledger(store, directory) -> RegistrationLedger:
    return RegistrationLedger(
        store=store,
        directory=directory,
        storage_timeout=5,
        directory_timeout=5,
        lock_timeout=5,
        clock=lambda: FIXED_NOW,
    )


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------

@pytest.fixture
def alice() -> Identity:
    return Identity(user_id="alice", role=Role.ATTENDEE)


@pytest.fixture
def bob() -> Identity:
    return Identity(user_id="bob", role=Role.ATTENDEE)


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id="root", role=Role.ADMIN)
