"""
Pydantic models for event registrations.

A registration binds one user to one event.  Rows move from
``active`` to ``cancelled`` exactly once and are never deleted; a user
who registers again after cancelling gets a fresh ``active`` row.
"""

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class RegistrationStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class RegistrationCreate(BaseModel):
    """Request body for ``POST /registrations``."""

    event_id: str = Field(..., min_length=1, max_length=128, examples=["3f2a9c"])

    @field_validator("event_id")
    @classmethod
    def strip_event_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("event_id must not be blank")
        return value


class Registration(BaseModel):
    id: int
    user_id: str
    event_id: str
    status: RegistrationStatus
    created_at: datetime
    cancelled_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
    }

    @property
    def is_active(self) -> bool:
        return self.status is RegistrationStatus.ACTIVE
