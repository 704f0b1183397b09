"""
Pydantic models for event data.

Events belong to the event directory.  The registration core only
reads three facts from them: whether the event exists, its capacity
(``None`` meaning unlimited) and the registration deadline, after
which no new registrations are accepted.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from event_registration_api.app.core.timeutils import ensure_utc


class EventBase(BaseModel):
    title: str = Field(..., min_length=1, examples=["Yoga Class"])
    description: Optional[str] = Field(None, examples=["A relaxing yoga session"])
    start_time: Optional[datetime] = Field(None, examples=["2025-09-01T10:00:00Z"])
    capacity: Optional[int] = Field(None, ge=1, examples=[15])
    registration_deadline: Optional[datetime] = Field(None, examples=["2025-08-31T18:00:00Z"])


class EventCreate(EventBase):
    """Schema for creating an event."""
    pass


class EventUpdate(BaseModel):
    """Schema for updating an event.

    All fields are optional; only fields present in the request body
    are changed.  Send ``"capacity": null`` to make an event unlimited.
    """

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    capacity: Optional[int] = Field(None, ge=1)
    registration_deadline: Optional[datetime] = None


class EventRead(EventBase):
    """Schema for reading an event from the API."""

    id: str
    created_at: datetime
    active_registrations: int = 0

    model_config = {
        "from_attributes": True,
    }


class EventInfo(BaseModel):
    """The slice of an event the registration ledger depends on."""

    id: str
    capacity: Optional[int] = None
    registration_deadline: Optional[datetime] = None

    def is_open(self, at: datetime) -> bool:
        if self.registration_deadline is None:
            return True
        return ensure_utc(at) <= ensure_utc(self.registration_deadline)
