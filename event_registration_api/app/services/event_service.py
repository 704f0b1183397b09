"""
Business logic for events.

``EventService`` maintains the ``events`` table that
``SQLiteEventDirectory`` reads.  It is the administrator-facing side
of the event directory: create, list, read and update.  Reads include
the current number of active registrations, obtained from the
registration ledger so the figure is right whichever store backs it.
"""

import asyncio
import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Optional

from event_registration_api.app.core.db import get_connection, transaction
from event_registration_api.app.core.errors import CapacityConflict, EventNotFound
from event_registration_api.app.core.security import Identity
from event_registration_api.app.core.timeutils import from_db, to_db, utcnow
from event_registration_api.app.schemas.event import EventCreate, EventRead, EventUpdate
from event_registration_api.app.services.audit_service import AuditService
from event_registration_api.app.services.registration_ledger import RegistrationLedger


logger = logging.getLogger(__name__)

_COLUMNS = "id, title, description, start_time, capacity, registration_deadline, created_at"
_DATETIME_FIELDS = {"start_time", "registration_deadline"}


def _capacity_message(event_id: str, active: int, capacity: int) -> str:
    return f"Event {event_id} has {active} active registrations; capacity {capacity} is too low"


class EventService:
    """Service for managing directory events.

    Uses SQLite for storage.  Capacity changes are serialized with
    registrations through the ledger's per-event lock, and a capacity
    below the current number of active registrations is refused.
    """

    def __init__(
        self,
        ledger: RegistrationLedger,
        db_path: Optional[str] = None,
        audit: Optional[AuditService] = None,
    ) -> None:
        self.ledger = ledger
        self.db_path = db_path
        self.audit = audit

    async def _audit(self, identity: Identity, action: str, event_id: str, details: Dict[str, Any]) -> None:
        if self.audit is None:
            return
        try:
            await self.audit.record(
                user_id=identity.user_id,
                action=action,
                object_type="event",
                object_id=event_id,
                details=details,
            )
        except (sqlite3.Error, OSError):
            logger.exception("Failed to write audit entry for event %s", event_id)

    def _row_to_event(self, row: sqlite3.Row, active: int) -> EventRead:
        return EventRead(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            start_time=from_db(row["start_time"]),
            capacity=row["capacity"],
            registration_deadline=from_db(row["registration_deadline"]),
            created_at=from_db(row["created_at"]),
            active_registrations=active,
        )

    def _insert_sync(self, event_id: str, data: EventCreate) -> sqlite3.Row:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO events (id, title, description, start_time, capacity, registration_deadline, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event_id,
                    data.title,
                    data.description,
                    to_db(data.start_time),
                    data.capacity,
                    to_db(data.registration_deadline),
                    to_db(utcnow()),
                ),
            )
            conn.commit()
            return cursor.execute(f"SELECT {_COLUMNS} FROM events WHERE id = ?", (event_id,)).fetchone()
        finally:
            conn.close()

    def _fetch_sync(self, event_id: str) -> Optional[sqlite3.Row]:
        conn = get_connection(self.db_path)
        try:
            return conn.execute(f"SELECT {_COLUMNS} FROM events WHERE id = ?", (event_id,)).fetchone()
        finally:
            conn.close()

    def _list_sync(self, limit: int, offset: int, sort_by: str, order: str) -> List[sqlite3.Row]:
        allowed_sorts = {"created_at", "title", "start_time", "capacity"}
        if sort_by not in allowed_sorts:
            sort_by = "created_at"
        order = order.lower()
        if order not in {"asc", "desc"}:
            order = "asc"
        conn = get_connection(self.db_path)
        try:
            return conn.execute(
                f"SELECT {_COLUMNS} FROM events ORDER BY {sort_by} {order}, id ASC LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
        finally:
            conn.close()

    def _update_sync(self, event_id: str, changes: Dict[str, Any]) -> None:
        assignments = ", ".join(f"{column} = ?" for column in changes)
        params = [to_db(v) if k in _DATETIME_FIELDS else v for k, v in changes.items()]
        conn = get_connection(self.db_path, autocommit=True)
        try:
            with transaction(conn) as cursor:
                capacity = changes.get("capacity")
                if capacity is not None:
                    # registrations stored in this database, checked under the write lock
                    active = cursor.execute(
                        "SELECT COUNT(*) AS total FROM registrations WHERE event_id = ? AND status = 'active'",
                        (event_id,),
                    ).fetchone()["total"]
                    if capacity < active:
                        raise CapacityConflict(_capacity_message(event_id, active, capacity))
                cursor.execute(
                    f"UPDATE events SET {assignments}, updated_at = ? WHERE id = ?",
                    (*params, to_db(utcnow()), event_id),
                )
        finally:
            conn.close()

    async def create_event(self, data: EventCreate, identity: Identity) -> EventRead:
        """Create a new event and return it."""
        event_id = uuid.uuid4().hex
        logger.info("User %s is creating event '%s' (%s)", identity.user_id, data.title, event_id)
        row = await asyncio.to_thread(self._insert_sync, event_id, data)
        await self._audit(identity, "create", event_id, {"title": data.title, "capacity": data.capacity})
        return self._row_to_event(row, 0)

    async def list_events(
        self,
        limit: int = 100,
        offset: int = 0,
        sort_by: str = "created_at",
        order: str = "asc",
    ) -> List[EventRead]:
        """Return events with sorting and pagination.

        ``sort_by`` is one of ``created_at``, ``title``, ``start_time``
        or ``capacity``; anything else falls back to ``created_at``.
        """
        rows = await asyncio.to_thread(self._list_sync, limit, offset, sort_by, order)
        events: List[EventRead] = []
        for row in rows:
            active = await self.ledger.active_count(row["id"])
            events.append(self._row_to_event(row, active))
        return events

    async def get_event(self, event_id: str) -> EventRead:
        row = await asyncio.to_thread(self._fetch_sync, event_id)
        if not row:
            raise EventNotFound(f"Event {event_id} not found")
        return self._row_to_event(row, await self.ledger.active_count(event_id))

    async def update_event(self, event_id: str, updates: EventUpdate, identity: Identity) -> EventRead:
        """Apply the fields present in ``updates``.

        Raises ``EventNotFound`` for an unknown event and
        ``CapacityConflict`` when the new capacity is below the number
        of active registrations.
        """
        changes = updates.model_dump(exclude_unset=True)
        # title is NOT NULL; an explicit null leaves it unchanged
        if changes.get("title", "") is None:
            del changes["title"]
        async with self.ledger.locks.acquire(event_id, timeout=self.ledger.lock_timeout):
            row = await asyncio.to_thread(self._fetch_sync, event_id)
            if not row:
                raise EventNotFound(f"Event {event_id} not found")
            if changes.get("capacity") is not None:
                active = await self.ledger.active_count(event_id)
                if changes["capacity"] < active:
                    raise CapacityConflict(_capacity_message(event_id, active, changes["capacity"]))
            if changes:
                await asyncio.to_thread(self._update_sync, event_id, changes)
        logger.info("User %s updated event %s: %s", identity.user_id, event_id, sorted(changes))
        if changes:
            details = {k: str(v) if v is not None else None for k, v in changes.items()}
            await self._audit(identity, "update", event_id, details)
        return await self.get_event(event_id)
