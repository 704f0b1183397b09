"""
Authorization policy for registration operations.

All role and ownership decisions go through ``authorize`` so that the
rules for listing, registering and cancelling live in one table
instead of being re-implemented per endpoint.
"""

import enum
from typing import Optional

from event_registration_api.app.core.errors import AuthRequired, Forbidden
from event_registration_api.app.core.security import Identity


class Action(str, enum.Enum):
    REGISTER = "register"
    CANCEL = "cancel"
    LIST_ALL = "list_all"
    LIST_FOR_USER = "list_for_user"
    MANAGE_EVENTS = "manage_events"
    READ_AUDIT = "read_audit"


# Actions any authenticated caller may perform on their own behalf.
SELF_SERVICE_ACTIONS = frozenset({Action.REGISTER, Action.CANCEL})

# Actions reserved for administrators.
ADMIN_ACTIONS = frozenset({Action.LIST_ALL, Action.MANAGE_EVENTS, Action.READ_AUDIT})


def authorize(identity: Optional[Identity], action: Action, owner_id: Optional[str] = None) -> Identity:
    """Return ``identity`` if it may perform ``action``, raise otherwise.

    ``owner_id`` is the user whose registrations the action touches;
    only ``LIST_FOR_USER`` consults it.  Raises ``AuthRequired`` for a
    missing identity and ``Forbidden`` for a denied one.
    """
    if identity is None:
        raise AuthRequired()
    if action in SELF_SERVICE_ACTIONS:
        return identity
    if identity.is_admin:
        return identity
    if action is Action.LIST_FOR_USER and owner_id is not None and owner_id == identity.user_id:
        return identity
    if action in ADMIN_ACTIONS:
        raise Forbidden("Administrator role required")
    raise Forbidden("Cannot access another user's registrations")
