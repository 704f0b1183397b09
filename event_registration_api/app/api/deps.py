"""
Shared FastAPI dependencies.

Services are built once in ``create_app`` and stored on
``app.state``; these helpers hand them to the endpoints.  Role checks
go through the authorization policy rather than comparing roles
inline.
"""

from typing import Callable

from fastapi import Depends, Request

from event_registration_api.app.core.security import Identity, get_current_identity
from event_registration_api.app.services.audit_service import AuditService
from event_registration_api.app.services.authorization import Action, authorize
from event_registration_api.app.services.event_service import EventService
from event_registration_api.app.services.registration_service import RegistrationService


def get_registration_service(request: Request) -> RegistrationService:
    return request.app.state.registration_service


def get_event_service(request: Request) -> EventService:
    return request.app.state.event_service


def get_audit_service(request: Request) -> AuditService:
    return request.app.state.audit_service


def require_action(action: Action) -> Callable[[Identity], Identity]:
    """Dependency factory enforcing that the caller may perform ``action``.

    Use as ``Depends(require_action(Action.MANAGE_EVENTS))``.  Raises
    ``Forbidden`` (HTTP 403) when the policy denies the caller.
    """

    def _action_dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        return authorize(identity, action)

    return _action_dependency
