"""
Audit service for recording and querying registration actions.

Writes go to the ``audit_logs`` table.  The registration service
records every successful register and cancel here; administrators
read the trail through ``GET /api/v1/audit/logs``.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

from event_registration_api.app.core.db import get_connection
from event_registration_api.app.core.timeutils import to_db, utcnow
from event_registration_api.app.schemas.audit import AuditEntry


class AuditService:
    """Writes and reads audit log entries in one SQLite database."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        self.db_path = db_path

    def _record_sync(
        self,
        user_id: Optional[str],
        action: str,
        object_type: str,
        object_id: Optional[str],
        details: Optional[dict],
    ) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO audit_logs (user_id, action, object_type, object_id, timestamp, details)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, action, object_type, object_id, to_db(utcnow()), json.dumps(details) if details else None),
            )
            conn.commit()
        finally:
            conn.close()

    async def record(
        self,
        user_id: Optional[str],
        action: str,
        object_type: str,
        object_id: Optional[Any] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert a new audit record.

        Parameters
        ----------
        user_id : Optional[str]
            ID of the user performing the action.  ``None`` for
            system-initiated actions.
        action : str
            Short verb such as ``"register"`` or ``"cancel"``.
        object_type : str
            Type of object affected (``"registration"``, ``"event"``).
        object_id : Optional[Any]
            Identifier of the affected object; stored as text.
        details : Optional[dict]
            Additional structured data, stored as JSON.
        """
        await asyncio.to_thread(
            self._record_sync,
            user_id,
            action,
            object_type,
            str(object_id) if object_id is not None else None,
            details,
        )

    def _list_sync(
        self,
        object_type: Optional[str],
        user_id: Optional[str],
        limit: int,
        offset: int,
    ) -> List[AuditEntry]:
        query = "SELECT id, user_id, action, object_type, object_id, timestamp, details FROM audit_logs"
        params: list = []
        where_clauses: list[str] = []
        if object_type:
            where_clauses.append("object_type = ?")
            params.append(object_type)
        if user_id:
            where_clauses.append("user_id = ?")
            params.append(user_id)
        if where_clauses:
            query += " WHERE " + " AND ".join(where_clauses)
        query += " ORDER BY id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
        finally:
            conn.close()
        entries: List[AuditEntry] = []
        for row in rows:
            details: Dict[str, Any] | None = json.loads(row["details"]) if row["details"] else None
            entries.append(
                AuditEntry(
                    id=row["id"],
                    user_id=row["user_id"],
                    action=row["action"],
                    object_type=row["object_type"],
                    object_id=row["object_id"],
                    timestamp=row["timestamp"],
                    details=details,
                )
            )
        return entries

    async def list(
        self,
        object_type: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AuditEntry]:
        """Return audit entries, newest first."""
        return await asyncio.to_thread(self._list_sync, object_type, user_id, limit, offset)
