"""
Error taxonomy for the registration subsystem.

Every failure the service can report is a subclass of
``RegistrationError``.  Each class carries a stable machine-readable
``code`` and the HTTP status the delivery layer maps it to, so clients
branch on ``code`` rather than on the free-text message.  Only
``TransientError`` is eligible for retry; everything else is a
terminal business outcome.
"""

from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class RegistrationError(Exception):
    """Base class for all registration subsystem errors."""

    code: str = "registration_error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Registration request failed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class AuthRequired(RegistrationError):
    code = "auth_required"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(RegistrationError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotOwner(Forbidden):
    """Raised by the ledger when an actor touches another user's registration."""

    default_message = "Registration belongs to another user"


class EventNotFound(RegistrationError):
    code = "event_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Event not found"


class NotRegistered(RegistrationError):
    code = "not_registered"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No active registration for this event"


class AlreadyRegistered(RegistrationError):
    code = "already_registered"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already registered for this event"


class EventFull(RegistrationError):
    code = "event_full"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Event is full"


class RegistrationClosed(RegistrationError):
    code = "registration_closed"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Registration for this event is closed"


class CapacityConflict(RegistrationError):
    code = "capacity_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Capacity is below the number of active registrations"


class TransientError(RegistrationError):
    """Storage or directory unavailable, or a bounded wait expired."""

    code = "transient"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable, retry later"


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    """Render a ``RegistrationError`` as ``{"detail": {"code", "message"}}``."""
    headers = None
    if isinstance(exc, AuthRequired):
        headers = {"WWW-Authenticate": "Bearer"}
    elif isinstance(exc, TransientError):
        headers = {"Retry-After": "1"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()},
        headers=headers,
    )
