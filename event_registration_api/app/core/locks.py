"""
Per-key mutual exclusion for coroutines.

``KeyedLock`` hands out one ``asyncio.Lock`` per key (an event id in
practice) so that work on the same key is serialized while work on
different keys proceeds in parallel.  Entries are created on demand
and dropped as soon as no coroutine holds or waits on them, so the
registry does not grow with the number of events ever seen.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Optional

from .errors import TransientError


logger = logging.getLogger(__name__)


class KeyedLock:
    """Registry of lazily created per-key ``asyncio.Lock`` objects."""

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def acquire(self, key: Hashable, timeout: Optional[float] = None) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block.

        Raises ``TransientError`` if the lock cannot be obtained within
        ``timeout`` seconds.  The lock is released on every exit path.
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                if timeout is None:
                    await lock.acquire()
                else:
                    await asyncio.wait_for(lock.acquire(), timeout)
            except asyncio.TimeoutError:
                logger.warning("Timed out after %ss waiting for lock %r", timeout, key)
                raise TransientError(f"Timed out waiting for lock on {key}") from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]
