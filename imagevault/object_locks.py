"""Per-object mutual exclusion for payload writes."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from common.logging_config import get_logger

logger = get_logger(__name__)


class ObjectLockRegistry:
    """
    Hands out one asyncio.Lock per object id.

    Locks are dropped once no task holds or waits for them, so the
    registry only grows with the number of objects being written.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, object_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(object_id, asyncio.Lock())
        self._waiters[object_id] = self._waiters.get(object_id, 0) + 1

        if lock.locked():
            logger.debug(f"Waiting for write lock [object_id={object_id}]")

        try:
            async with lock:
                yield
        finally:
            self._waiters[object_id] -= 1
            if self._waiters[object_id] == 0:
                del self._waiters[object_id]
                del self._locks[object_id]

    def is_locked(self, object_id: str) -> bool:
        lock = self._locks.get(object_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
