"""
In-memory read cache of reassembled objects with time-based expiry.

Entries expire a fixed TTL after insertion. Expiry is checked on every
access, and a background sweep removes entries nobody asks for again.
"""

import asyncio
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from common.constants import CACHE_TTL_SECONDS, CACHE_SWEEP_INTERVAL_SECONDS
from common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    payload: bytes
    expires_at: float


class ReadCache:
    """
    Thread-safe TTL cache mapping object id to payload bytes.

    Only payloads are stored; callers fetch MIME type from metadata.
    """

    def __init__(
        self,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        sweep_interval_seconds: float = CACHE_SWEEP_INTERVAL_SECONDS,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize read cache.

        Args:
            ttl_seconds: Lifetime of an entry measured from insertion
            sweep_interval_seconds: Time between background sweeps
            max_entries: Optional cap; the oldest insertion is evicted first
            clock: Monotonic time source
        """
        if ttl_seconds <= 0:
            raise ValueError(f"Cache TTL must be positive, got {ttl_seconds}")
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"Cache max_entries must be positive, got {max_entries}")

        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def get(self, object_id: str) -> Optional[bytes]:
        """
        Return the cached payload, or None on a miss or an expired entry.
        """
        with self._lock:
            entry = self._entries.get(object_id)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[object_id]
                logger.debug(f"Cache expired for image {object_id}")
                return None
            return entry.payload

    def put(self, object_id: str, payload: bytes) -> None:
        """
        Store payload; replacing an existing entry restarts its TTL.
        """
        with self._lock:
            self._entries.pop(object_id, None)
            self._entries[object_id] = CacheEntry(
                payload=payload,
                expires_at=self._clock() + self.ttl_seconds,
            )
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted_id, _ = self._entries.popitem(last=False)
                    logger.debug(f"Cache full, evicted image {evicted_id}")

    def invalidate(self, object_id: str) -> bool:
        with self._lock:
            return self._entries.pop(object_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, object_id: str) -> bool:
        return self.get(object_id) is not None

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Cache sweep task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Started cache sweep task (ttl: {self.ttl_seconds}s, interval: {self.sweep_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped cache sweep task")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.sweep_interval_seconds)

                if not self._running:
                    break

                self.sweep()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cache sweep task: {e}", exc_info=True)
