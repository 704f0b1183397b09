"""Unit tests for EventService and the SQLite event directory."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from event_registration_api.app.core.errors import CapacityConflict, EventFull, EventNotFound
from event_registration_api.app.schemas.event import EventCreate, EventUpdate
from event_registration_api.app.services.audit_service import AuditService
from event_registration_api.app.services.event_directory import SQLiteEventDirectory
from event_registration_api.app.services.event_service import EventService
from event_registration_api.app.services.registration_ledger import RegistrationLedger


@pytest.fixture
def sqlite_ledger(sqlite_store, db_path):
    return RegistrationLedger(sqlite_store, SQLiteEventDirectory(db_path))


@pytest.fixture
def events(sqlite_ledger, db_path):
    return EventService(sqlite_ledger, db_path=db_path)


@pytest.mark.asyncio
async def test_created_event_is_visible_to_directory(events, db_path, admin):
    deadline = datetime(2030, 1, 1, tzinfo=timezone.utc)
    event = await events.create_event(
        EventCreate(title="Yoga", capacity=3, registration_deadline=deadline), admin
    )

    directory = SQLiteEventDirectory(db_path)
    assert await directory.exists(event.id)
    assert await directory.capacity_of(event.id) == 3
    assert await directory.is_open(event.id, at=deadline - timedelta(days=1))
    assert not await directory.is_open(event.id, at=deadline + timedelta(seconds=1))
    assert not await directory.exists("missing")


@pytest.mark.asyncio
async def test_unlimited_capacity_and_naive_deadline(events, db_path, admin):
    event = await events.create_event(
        EventCreate(title="Open house", registration_deadline=datetime(2030, 1, 1)), admin
    )

    assert event.capacity is None
    assert event.registration_deadline == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert await SQLiteEventDirectory(db_path).capacity_of(event.id) is None


@pytest.mark.asyncio
async def test_get_event_reports_active_registrations(events, sqlite_ledger, admin):
    event = await events.create_event(EventCreate(title="Talk", capacity=5), admin)
    await sqlite_ledger.create("alice", event.id)
    await sqlite_ledger.create("bob", event.id)
    await sqlite_ledger.cancel("bob", event.id)

    fetched = await events.get_event(event.id)

    assert fetched.active_registrations == 1
    listed = await events.list_events()
    assert [(item.id, item.active_registrations) for item in listed] == [(event.id, 1)]


@pytest.mark.asyncio
async def test_get_unknown_event_raises(events):
    with pytest.raises(EventNotFound):
        await events.get_event("missing")


@pytest.mark.asyncio
async def test_update_changes_only_given_fields(events, admin):
    event = await events.create_event(EventCreate(title="Talk", description="intro", capacity=5), admin)

    updated = await events.update_event(event.id, EventUpdate(title="Keynote"), admin)

    assert updated.title == "Keynote"
    assert updated.description == "intro"
    assert updated.capacity == 5


@pytest.mark.asyncio
async def test_capacity_cannot_drop_below_active_count(events, sqlite_ledger, admin):
    event = await events.create_event(EventCreate(title="Talk", capacity=5), admin)
    for user_id in ("a", "b", "c"):
        await sqlite_ledger.create(user_id, event.id)

    with pytest.raises(CapacityConflict):
        await events.update_event(event.id, EventUpdate(capacity=2), admin)

    updated = await events.update_event(event.id, EventUpdate(capacity=3), admin)
    assert updated.capacity == 3


@pytest.mark.asyncio
async def test_capacity_can_be_made_unlimited(events, admin):
    event = await events.create_event(EventCreate(title="Talk", capacity=1), admin)

    updated = await events.update_event(event.id, EventUpdate(capacity=None), admin)

    assert updated.capacity is None


@pytest.mark.asyncio
async def test_list_events_sorting_and_paging(events, admin):
    for title in ("b", "c", "a"):
        await events.create_event(EventCreate(title=title), admin)

    titles = [event.title for event in await events.list_events(sort_by="title", order="desc")]
    assert titles == ["c", "b", "a"]
    page = await events.list_events(sort_by="title", limit=1, offset=1)
    assert [event.title for event in page] == ["b"]


class _GatedDirectory(SQLiteEventDirectory):
    """Pauses the next lookup after it has read the event."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.gate_next = False
        self.looked_up = asyncio.Event()
        self.release = asyncio.Event()

    async def lookup(self, event_id):
        info = await super().lookup(event_id)
        if self.gate_next:
            self.gate_next = False
            self.looked_up.set()
            await self.release.wait()
        return info


@pytest.mark.asyncio
async def test_capacity_lowered_while_create_is_pending(sqlite_store, db_path, admin):
    directory = _GatedDirectory(db_path)
    ledger = RegistrationLedger(sqlite_store, directory, lock_timeout=5)
    events = EventService(ledger, db_path=db_path)
    event = await events.create_event(EventCreate(title="Talk", capacity=5), admin)
    await ledger.create("a", event.id)
    await ledger.create("b", event.id)

    directory.gate_next = True
    pending = asyncio.create_task(ledger.create("c", event.id))
    await directory.looked_up.wait()
    await events.update_event(event.id, EventUpdate(capacity=2), admin)
    directory.release.set()

    with pytest.raises(EventFull):
        await pending
    assert await ledger.active_count(event.id) == 2


@pytest.mark.asyncio
async def test_event_changes_survive_audit_failure(sqlite_ledger, db_path, tmp_path, admin):
    # No migrations applied, so the audit_logs table does not exist.
    audit = AuditService(str(tmp_path / "unmigrated.db"))
    events = EventService(sqlite_ledger, db_path=db_path, audit=audit)

    event = await events.create_event(EventCreate(title="Talk", capacity=5), admin)
    updated = await events.update_event(event.id, EventUpdate(capacity=4), admin)

    assert updated.capacity == 4
    assert (await events.get_event(event.id)).title == "Talk"
