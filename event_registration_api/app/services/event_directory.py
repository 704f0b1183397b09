"""
Event directory adapters.

The registration ledger reads, but never owns, event metadata.  It
talks to the directory through ``EventDirectory``: a single
``lookup`` coroutine returning the ``EventInfo`` slice it needs, plus
convenience predicates built on top of it.  ``SQLiteEventDirectory``
reads the ``events`` table maintained by ``EventService``;
``InMemoryEventDirectory`` backs tests and single-process demos.
"""

import asyncio
import logging
import sqlite3
from datetime import datetime
from typing import Dict, Optional

from event_registration_api.app.core.db import get_connection
from event_registration_api.app.core.errors import TransientError
from event_registration_api.app.core.timeutils import from_db, utcnow
from event_registration_api.app.schemas.event import EventInfo


logger = logging.getLogger(__name__)


class EventDirectory:
    """Read-only view of events used by the registration ledger."""

    async def lookup(self, event_id: str) -> Optional[EventInfo]:
        raise NotImplementedError

    async def exists(self, event_id: str) -> bool:
        return await self.lookup(event_id) is not None

    async def capacity_of(self, event_id: str) -> Optional[int]:
        """Return the capacity, ``None`` for unlimited.  Unknown events yield ``None`` too."""
        info = await self.lookup(event_id)
        return info.capacity if info else None

    async def is_open(self, event_id: str, at: Optional[datetime] = None) -> bool:
        info = await self.lookup(event_id)
        return info is not None and info.is_open(at or utcnow())


class SQLiteEventDirectory(EventDirectory):
    """Directory backed by the ``events`` table."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path

    def _lookup_sync(self, event_id: str) -> Optional[EventInfo]:
        try:
            conn = get_connection(self.db_path)
        except sqlite3.OperationalError as exc:
            raise TransientError(f"Event directory unavailable: {exc}") from exc
        try:
            row = conn.execute(
                "SELECT id, capacity, registration_deadline FROM events WHERE id = ?",
                (event_id,),
            ).fetchone()
        except sqlite3.OperationalError as exc:
            raise TransientError(f"Event directory unavailable: {exc}") from exc
        finally:
            conn.close()
        if not row:
            return None
        return EventInfo(
            id=row["id"],
            capacity=row["capacity"],
            registration_deadline=from_db(row["registration_deadline"]),
        )

    async def lookup(self, event_id: str) -> Optional[EventInfo]:
        return await asyncio.to_thread(self._lookup_sync, event_id)


class InMemoryEventDirectory(EventDirectory):
    """Directory held in a dict; events are added with ``add_event``."""

    def __init__(self) -> None:
        self._events: Dict[str, EventInfo] = {}

    def add_event(
        self,
        event_id: str,
        capacity: Optional[int] = None,
        registration_deadline: Optional[datetime] = None,
    ) -> EventInfo:
        info = EventInfo(id=event_id, capacity=capacity, registration_deadline=registration_deadline)
        self._events[event_id] = info
        logger.debug("Directory event %s added (capacity=%s)", event_id, capacity)
        return info

    def remove_event(self, event_id: str) -> None:
        self._events.pop(event_id, None)

    async def lookup(self, event_id: str) -> Optional[EventInfo]:
        return self._events.get(event_id)
