"""
Event endpoints for API v1.

Administrators create and update events; anyone may list them or read
a single event, including how many active registrations it has.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from event_registration_api.app.api.deps import get_event_service, require_action
from event_registration_api.app.core.security import Identity
from event_registration_api.app.schemas.event import EventCreate, EventRead, EventUpdate
from event_registration_api.app.services.authorization import Action
from event_registration_api.app.services.event_service import EventService


router = APIRouter()


@router.post("", response_model=EventRead, status_code=status.HTTP_201_CREATED)
async def create_event(
    event: EventCreate,
    identity: Identity = Depends(require_action(Action.MANAGE_EVENTS)),
    service: EventService = Depends(get_event_service),
) -> EventRead:
    """Create a new event.  Requires the admin role."""
    return await service.create_event(event, identity)


@router.get("", response_model=List[EventRead])
async def list_events(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("created_at"),
    order: str = Query("asc"),
    service: EventService = Depends(get_event_service),
) -> List[EventRead]:
    """List events.

    - **limit**, **offset**: pagination.
    - **sort_by**: `created_at`, `title`, `start_time` or `capacity`.
    - **order**: `asc` or `desc`.
    """
    return await service.list_events(limit=limit, offset=offset, sort_by=sort_by, order=order)


@router.get("/{event_id}", response_model=EventRead)
async def get_event(
    event_id: str,
    service: EventService = Depends(get_event_service),
) -> EventRead:
    return await service.get_event(event_id)


@router.patch("/{event_id}", response_model=EventRead)
async def update_event(
    event_id: str,
    updates: EventUpdate,
    identity: Identity = Depends(require_action(Action.MANAGE_EVENTS)),
    service: EventService = Depends(get_event_service),
) -> EventRead:
    """Update an existing event.

    Only fields present in the body change.  Lowering ``capacity``
    below the number of active registrations returns 409
    ``capacity_conflict``.
    """
    return await service.update_event(event_id, updates, identity)
