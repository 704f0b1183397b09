"""
Persistence adapters behind the registration ledger.

A store performs the storage half of the ledger's invariants.  Its
``create_active`` is one atomic conditional insert: the "already
registered?" check, the active-count read and the insert happen as a
unit, so concurrent writers (other threads, or other processes sharing
the same SQLite file) can never push an event past its capacity or
give one user two active rows for the same event.

Store methods are synchronous; the ledger runs them in worker threads.
"""

import logging
import sqlite3
import threading
from datetime import datetime
from itertools import count
from typing import Dict, List, Optional

from event_registration_api.app.core.db import get_connection, transaction
from event_registration_api.app.core.errors import (
    AlreadyRegistered,
    EventFull,
    NotRegistered,
    TransientError,
)
from event_registration_api.app.core.timeutils import from_db, to_db
from event_registration_api.app.schemas.registration import Registration, RegistrationStatus


logger = logging.getLogger(__name__)


class RegistrationStore:
    """Interface implemented by every registration store."""

    def create_active(
        self, user_id: str, event_id: str, capacity: Optional[int], now: datetime
    ) -> Registration:
        """Insert an active registration unless the pair is already active or the event is full.

        ``capacity`` of ``None`` means unlimited.  Raises
        ``AlreadyRegistered`` or ``EventFull``.
        """
        raise NotImplementedError

    def cancel_active(self, user_id: str, event_id: str, now: datetime) -> Registration:
        """Move the pair's active registration to ``cancelled``; ``NotRegistered`` if there is none."""
        raise NotImplementedError

    def find_active(self, user_id: str, event_id: str) -> Optional[Registration]:
        raise NotImplementedError

    def count_active(self, event_id: str) -> int:
        raise NotImplementedError

    def list(
        self,
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
        status: Optional[RegistrationStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Registration]:
        raise NotImplementedError


def _row_to_registration(row: sqlite3.Row) -> Registration:
    return Registration(
        id=row["id"],
        user_id=row["user_id"],
        event_id=row["event_id"],
        status=RegistrationStatus(row["status"]),
        created_at=from_db(row["created_at"]),
        cancelled_at=from_db(row["cancelled_at"]),
    )


class SQLiteRegistrationStore(RegistrationStore):
    """Store backed by the ``registrations`` table.

    Writes run inside ``BEGIN IMMEDIATE`` so the read-then-insert
    sequence holds the database write lock.  When the event is also
    stored in this database its capacity is read inside the same
    transaction, so a concurrent capacity change in another process is
    never missed.  The partial unique
    index ``uq_registrations_active_pair`` rejects a second active row
    even if that discipline were bypassed.  SQLite "database is locked"
    errors surface as ``TransientError``.
    """

    _COLUMNS = "id, user_id, event_id, status, created_at, cancelled_at"

    def __init__(self, db_path: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.db_path = db_path
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path, timeout=self.timeout, autocommit=True)
        except sqlite3.OperationalError as exc:
            raise TransientError(f"Registration storage unavailable: {exc}") from exc

    def create_active(
        self, user_id: str, event_id: str, capacity: Optional[int], now: datetime
    ) -> Registration:
        conn = self._connect()
        try:
            with transaction(conn) as cursor:
                existing = cursor.execute(
                    "SELECT id FROM registrations WHERE user_id = ? AND event_id = ? AND status = 'active'",
                    (user_id, event_id),
                ).fetchone()
                if existing:
                    raise AlreadyRegistered()
                # an events row in this database is authoritative over the caller's value
                event_row = cursor.execute(
                    "SELECT capacity FROM events WHERE id = ?", (event_id,)
                ).fetchone()
                if event_row is not None:
                    capacity = event_row["capacity"]
                if capacity is not None:
                    active = cursor.execute(
                        "SELECT COUNT(*) AS total FROM registrations WHERE event_id = ? AND status = 'active'",
                        (event_id,),
                    ).fetchone()["total"]
                    if active >= capacity:
                        raise EventFull()
                cursor.execute(
                    """
                    INSERT INTO registrations (user_id, event_id, status, created_at)
                    VALUES (?, ?, 'active', ?)
                    """,
                    (user_id, event_id, to_db(now)),
                )
                registration_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise AlreadyRegistered() from exc
        except sqlite3.OperationalError as exc:
            raise TransientError(f"Registration storage unavailable: {exc}") from exc
        finally:
            conn.close()
        return Registration(
            id=registration_id,
            user_id=user_id,
            event_id=event_id,
            status=RegistrationStatus.ACTIVE,
            created_at=now,
        )

    def cancel_active(self, user_id: str, event_id: str, now: datetime) -> Registration:
        conn = self._connect()
        try:
            with transaction(conn) as cursor:
                row = cursor.execute(
                    f"SELECT {self._COLUMNS} FROM registrations "
                    "WHERE user_id = ? AND event_id = ? AND status = 'active'",
                    (user_id, event_id),
                ).fetchone()
                if not row:
                    raise NotRegistered()
                cursor.execute(
                    "UPDATE registrations SET status = 'cancelled', cancelled_at = ? "
                    "WHERE id = ? AND status = 'active'",
                    (to_db(now), row["id"]),
                )
        except sqlite3.OperationalError as exc:
            raise TransientError(f"Registration storage unavailable: {exc}") from exc
        finally:
            conn.close()
        cancelled = _row_to_registration(row)
        return cancelled.model_copy(update={"status": RegistrationStatus.CANCELLED, "cancelled_at": now})

    def find_active(self, user_id: str, event_id: str) -> Optional[Registration]:
        rows = self.list(user_id=user_id, event_id=event_id, status=RegistrationStatus.ACTIVE)
        return rows[0] if rows else None

    def count_active(self, event_id: str) -> int:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM registrations WHERE event_id = ? AND status = 'active'",
                (event_id,),
            ).fetchone()
        except sqlite3.OperationalError as exc:
            raise TransientError(f"Registration storage unavailable: {exc}") from exc
        finally:
            conn.close()
        return row["total"]

    def list(
        self,
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
        status: Optional[RegistrationStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Registration]:
        query = f"SELECT {self._COLUMNS} FROM registrations"
        params: list = []
        where_clauses: list[str] = []
        if user_id is not None:
            where_clauses.append("user_id = ?")
            params.append(user_id)
        if event_id is not None:
            where_clauses.append("event_id = ?")
            params.append(event_id)
        if status is not None:
            where_clauses.append("status = ?")
            params.append(RegistrationStatus(status).value)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY id ASC"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        elif offset:
            query += " LIMIT -1 OFFSET ?"
            params.append(offset)

        conn = self._connect()
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
        except sqlite3.OperationalError as exc:
            raise TransientError(f"Registration storage unavailable: {exc}") from exc
        finally:
            conn.close()
        return [_row_to_registration(row) for row in rows]


class InMemoryRegistrationStore(RegistrationStore):
    """Store kept in process memory.

    A ``threading.Lock`` makes check-and-insert atomic across threads
    of one process.  It provides no guarantee across processes, so it
    must only back single-worker deployments and tests.
    """

    def __init__(self) -> None:
        self._rows: Dict[int, Registration] = {}
        self._ids = count(1)
        self._mutex = threading.Lock()

    def _active(self, user_id: Optional[str], event_id: str) -> List[Registration]:
        return [
            row
            for row in self._rows.values()
            if row.event_id == event_id
            and row.is_active
            and (user_id is None or row.user_id == user_id)
        ]

    def create_active(
        self, user_id: str, event_id: str, capacity: Optional[int], now: datetime
    ) -> Registration:
        with self._mutex:
            if self._active(user_id, event_id):
                raise AlreadyRegistered()
            if capacity is not None and len(self._active(None, event_id)) >= capacity:
                raise EventFull()
            registration = Registration(
                id=next(self._ids),
                user_id=user_id,
                event_id=event_id,
                status=RegistrationStatus.ACTIVE,
                created_at=now,
            )
            self._rows[registration.id] = registration
            return registration

    def cancel_active(self, user_id: str, event_id: str, now: datetime) -> Registration:
        with self._mutex:
            active = self._active(user_id, event_id)
            if not active:
                raise NotRegistered()
            cancelled = active[0].model_copy(
                update={"status": RegistrationStatus.CANCELLED, "cancelled_at": now}
            )
            self._rows[cancelled.id] = cancelled
            return cancelled

    def find_active(self, user_id: str, event_id: str) -> Optional[Registration]:
        with self._mutex:
            active = self._active(user_id, event_id)
        return active[0] if active else None

    def count_active(self, event_id: str) -> int:
        with self._mutex:
            return len(self._active(None, event_id))

    def list(
        self,
        user_id: Optional[str] = None,
        event_id: Optional[str] = None,
        status: Optional[RegistrationStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Registration]:
        with self._mutex:
            rows = sorted(self._rows.values(), key=lambda row: row.id)
        if user_id is not None:
            rows = [row for row in rows if row.user_id == user_id]
        if event_id is not None:
            rows = [row for row in rows if row.event_id == event_id]
        if status is not None:
            rows = [row for row in rows if row.status == RegistrationStatus(status)]
        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return rows
