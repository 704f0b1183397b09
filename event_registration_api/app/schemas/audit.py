"""Pydantic model for audit log entries."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class AuditEntry(BaseModel):
    id: int
    user_id: Optional[str] = None
    action: str
    object_type: Optional[str] = None
    object_id: Optional[str] = None
    timestamp: datetime
    details: Optional[Any] = None
