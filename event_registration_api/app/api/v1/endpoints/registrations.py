"""
Registration endpoints for API v1.

These four routes are a thin layer over ``RegistrationService``: they
collect the caller's identity and request parameters and return the
service result.  Errors raised by the service are rendered by the
application-wide ``RegistrationError`` handler, so every failure
reaches the client with a stable ``code``.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from event_registration_api.app.api.deps import get_registration_service
from event_registration_api.app.core.security import Identity, get_current_identity
from event_registration_api.app.schemas.registration import (
    Registration,
    RegistrationCreate,
    RegistrationStatus,
)
from event_registration_api.app.services.registration_service import RegistrationService


router = APIRouter()


@router.post(
    "",
    response_model=Registration,
    status_code=status.HTTP_201_CREATED,
)
async def register_user(
    body: RegistrationCreate,
    identity: Identity = Depends(get_current_identity),
    service: RegistrationService = Depends(get_registration_service),
) -> Registration:
    """Register the caller for an event.

    Returns 409 with ``event_full``, ``already_registered`` or
    ``registration_closed`` when the registration is refused, and 404
    with ``event_not_found`` for an unknown event.
    """
    return await service.register_user(identity, body.event_id)


@router.get(
    "",
    response_model=List[Registration],
)
async def get_registrations(
    event_id: Optional[str] = Query(None, description="Only registrations for this event"),
    status_filter: Optional[RegistrationStatus] = Query(None, alias="status", description="active or cancelled"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_current_identity),
    service: RegistrationService = Depends(get_registration_service),
) -> List[Registration]:
    """List all registrations.  Administrators only."""
    return await service.get_registrations(
        identity, event_id=event_id, status=status_filter, limit=limit, offset=offset
    )


@router.get(
    "/user/{user_id}",
    response_model=List[Registration],
)
async def get_user_registrations(
    user_id: str = Path(..., description="ID of the user whose registrations to list"),
    status_filter: Optional[RegistrationStatus] = Query(None, alias="status"),
    identity: Identity = Depends(get_current_identity),
    service: RegistrationService = Depends(get_registration_service),
) -> List[Registration]:
    """List one user's registrations.

    Callers may list their own registrations; listing anyone else's
    requires the admin role.
    """
    return await service.get_user_registrations(identity, user_id, status=status_filter)


@router.delete(
    "/{event_id}",
    response_model=Registration,
)
async def unregister_event(
    event_id: str = Path(..., description="ID of the event to cancel the caller's registration for"),
    identity: Identity = Depends(get_current_identity),
    service: RegistrationService = Depends(get_registration_service),
) -> Registration:
    """Cancel the caller's own registration for an event.

    The cancelled registration is returned.  404 with
    ``not_registered`` if the caller has no active registration.
    """
    return await service.unregister_event(identity, event_id)
