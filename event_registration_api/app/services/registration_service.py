"""
Business logic for event registrations.

``RegistrationService`` is the surface the HTTP layer calls.  It
authorizes the caller through the shared policy, normalizes input,
delegates to the ``RegistrationLedger`` and records an audit entry
for every successful change.

Business rejections (``EventFull``, ``AlreadyRegistered`` and the
rest) are final and propagate unchanged.  Only ``TransientError`` is
retried, a bounded number of times with exponential backoff.  A
store call that timed out may still have committed, so a retried
create that meets ``AlreadyRegistered`` returns the caller's active
registration instead of failing.
"""

import asyncio
import logging
import sqlite3
from typing import Awaitable, Callable, List, Optional, TypeVar

from event_registration_api.app.core.errors import (
    AlreadyRegistered,
    EventNotFound,
    RegistrationError,
    TransientError,
)
from event_registration_api.app.core.security import Identity
from event_registration_api.app.schemas.registration import Registration, RegistrationStatus
from event_registration_api.app.services.audit_service import AuditService
from event_registration_api.app.services.authorization import Action, authorize
from event_registration_api.app.services.registration_ledger import RegistrationLedger


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RegistrationService:
    """Service for registering users to events and cancelling registrations."""

    def __init__(
        self,
        ledger: RegistrationLedger,
        audit: Optional[AuditService] = None,
        max_attempts: int = 3,
        backoff_seconds: float = 0.05,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.ledger = ledger
        self.audit = audit
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    async def _with_retry(self, operation: str, func: Callable[..., Awaitable[T]], *args) -> T:
        attempt = 1
        while True:
            try:
                return await func(*args)
            except TransientError as exc:
                if attempt >= self.max_attempts:
                    logger.error("%s failed after %s attempts: %s", operation, attempt, exc.message)
                    raise
                delay = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "%s attempt %s failed (%s); retrying in %.2fs", operation, attempt, exc.message, delay
                )
                await self.sleep(delay)
                attempt += 1

    async def _audit(self, identity: Identity, action: str, registration: Registration) -> None:
        if self.audit is None:
            return
        try:
            await self.audit.record(
                user_id=identity.user_id,
                action=action,
                object_type="registration",
                object_id=registration.id,
                details={"event_id": registration.event_id, "status": registration.status.value},
            )
        except (sqlite3.Error, OSError):
            logger.exception("Failed to write audit entry for registration %s", registration.id)

    async def register_user(self, identity: Optional[Identity], event_id: Optional[str]) -> Registration:
        """Register the caller for ``event_id``."""
        identity = authorize(identity, Action.REGISTER)
        event_id = (event_id or "").strip()
        if not event_id:
            raise EventNotFound("Event id is required")
        attempts = 0

        async def create() -> Registration:
            nonlocal attempts
            attempts += 1
            try:
                return await self.ledger.create(identity.user_id, event_id)
            except AlreadyRegistered:
                if attempts == 1:
                    raise
                # an earlier attempt that timed out may have committed
                existing = await self.ledger.find_active(identity.user_id, event_id)
                if existing is None:
                    raise
                logger.info(
                    "Registration %s of user %s for event %s was committed by an earlier attempt",
                    existing.id, identity.user_id, event_id,
                )
                return existing

        try:
            registration = await self._with_retry("register", create)
        except RegistrationError as exc:
            logger.warning(
                "Registration of user %s for event %s rejected: %s", identity.user_id, event_id, exc.code
            )
            raise
        await self._audit(identity, "register", registration)
        return registration

    async def get_registrations(
        self,
        identity: Optional[Identity],
        event_id: Optional[str] = None,
        status: Optional[RegistrationStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Registration]:
        """List every registration (administrators only)."""
        authorize(identity, Action.LIST_ALL)
        return await self._with_retry(
            "list registrations", self.ledger.list_all, event_id, status, limit, offset
        )

    async def get_user_registrations(
        self,
        identity: Optional[Identity],
        target_user_id: str,
        status: Optional[RegistrationStatus] = None,
    ) -> List[Registration]:
        """List the registrations of ``target_user_id``.

        Callers may always list their own registrations, even when
        there are none.  Listing someone else's requires the admin
        role.
        """
        authorize(identity, Action.LIST_FOR_USER, owner_id=target_user_id)
        return await self._with_retry(
            "list user registrations", self.ledger.list_for_user, target_user_id, None, status
        )

    async def unregister_event(self, identity: Optional[Identity], event_id: Optional[str]) -> Registration:
        """Cancel the caller's own active registration for ``event_id``.

        This path is self-service only: administrators cancel their own
        registrations here like anyone else, not other users'.
        """
        identity = authorize(identity, Action.CANCEL)
        event_id = (event_id or "").strip()
        try:
            registration = await self._with_retry(
                "unregister", self.ledger.cancel, identity.user_id, event_id, identity
            )
        except RegistrationError as exc:
            logger.warning(
                "Cancellation by user %s for event %s rejected: %s", identity.user_id, event_id, exc.code
            )
            raise
        await self._audit(identity, "cancel", registration)
        return registration
