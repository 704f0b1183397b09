"""
Registration ledger: the authoritative record of who is registered where.

The ledger owns every registration row and enforces three invariants:

* at most one active registration per (user, event);
* never more active registrations for an event than its capacity;
* a registration is changed only by its owner or an administrator.

``create`` looks the event up in the directory first, outside any
lock, to reject unknown and closed events early.  It then takes the
per-event lock, reads the capacity again and runs the store's atomic
check-and-insert.  Capacity changes hold the same lock, so the
insert always sees the current capacity.  Creates for one event are
therefore applied one at a time while different events never wait on
each other.  Every blocking step is bounded; an expired wait becomes
``TransientError`` and the lock is released on the way out.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, TypeVar

from event_registration_api.app.core.errors import (
    EventNotFound,
    NotOwner,
    RegistrationClosed,
    TransientError,
)
from event_registration_api.app.core.locks import KeyedLock
from event_registration_api.app.core.security import Identity
from event_registration_api.app.core.timeutils import utcnow
from event_registration_api.app.schemas.event import EventInfo
from event_registration_api.app.schemas.registration import Registration, RegistrationStatus
from event_registration_api.app.services.event_directory import EventDirectory
from event_registration_api.app.services.registration_store import RegistrationStore


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RegistrationLedger:
    """Invariant-enforcing front of a ``RegistrationStore``."""

    def __init__(
        self,
        store: RegistrationStore,
        directory: EventDirectory,
        locks: Optional[KeyedLock] = None,
        storage_timeout: Optional[float] = None,
        directory_timeout: Optional[float] = None,
        lock_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.directory = directory
        self.locks = locks or KeyedLock()
        self.storage_timeout = storage_timeout
        self.directory_timeout = directory_timeout
        self.lock_timeout = lock_timeout
        self.clock = clock

    async def _bounded(self, awaitable: Awaitable[T], timeout: Optional[float], what: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError:
            logger.warning("%s did not answer within %ss", what, timeout)
            raise TransientError(f"{what} timed out") from None

    async def _store_call(self, func: Callable[..., T], *args) -> T:
        return await self._bounded(
            asyncio.to_thread(func, *args), self.storage_timeout, "Registration storage"
        )

    async def _lookup(self, event_id: str) -> EventInfo:
        info = await self._bounded(
            self.directory.lookup(event_id), self.directory_timeout, "Event directory"
        )
        if info is None:
            raise EventNotFound(f"Event {event_id} not found")
        return info

    async def create(self, user_id: str, event_id: str) -> Registration:
        """Register ``user_id`` for ``event_id``.

        Raises ``EventNotFound``, ``RegistrationClosed``,
        ``AlreadyRegistered``, ``EventFull`` or ``TransientError``.  A
        previously cancelled registration stays as history; the new
        registration is a separate row.
        """
        info = await self._lookup(event_id)
        now = self.clock()
        if not info.is_open(now):
            raise RegistrationClosed(f"Registration for event {event_id} closed")

        async with self.locks.acquire(event_id, timeout=self.lock_timeout):
            # capacity changes are made under this lock, so re-read it here
            current = await self._lookup(event_id)
            registration = await self._store_call(
                self.store.create_active, user_id, event_id, current.capacity, now
            )
        logger.info(
            "User %s registered for event %s (registration %s)", user_id, event_id, registration.id
        )
        return registration

    async def cancel(self, user_id: str, event_id: str, actor: Optional[Identity] = None) -> Registration:
        """Cancel the active registration of ``user_id`` for ``event_id``.

        ``actor`` is the caller when it may differ from the owner; it
        must be the owner or an administrator, else ``NotOwner``.
        Cancelling a missing or already cancelled registration raises
        ``NotRegistered``.
        """
        if actor is not None and actor.user_id != user_id and not actor.is_admin:
            raise NotOwner()
        async with self.locks.acquire(event_id, timeout=self.lock_timeout):
            registration = await self._store_call(
                self.store.cancel_active, user_id, event_id, self.clock()
            )
        logger.info(
            "Registration %s of user %s for event %s cancelled", registration.id, user_id, event_id
        )
        return registration

    async def list_all(
        self,
        event_id: Optional[str] = None,
        status: Optional[RegistrationStatus] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Registration]:
        return await self._store_call(self.store.list, None, event_id, status, limit, offset)

    async def list_for_user(
        self,
        user_id: str,
        event_id: Optional[str] = None,
        status: Optional[RegistrationStatus] = None,
    ) -> List[Registration]:
        return await self._store_call(self.store.list, user_id, event_id, status)

    async def find_active(self, user_id: str, event_id: str) -> Optional[Registration]:
        return await self._store_call(self.store.find_active, user_id, event_id)

    async def active_count(self, event_id: str) -> int:
        return await self._store_call(self.store.count_active, event_id)
