"""
Zone locks - Serialize writers to the same zone of the same vendor

A manual sync and a scheduled sync may run at the same time against the same
orchestrator. Writes to one (vendor, zone) pair must not interleave.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Iterable, Tuple

logger = logging.getLogger(__name__)

ZoneKey = Tuple[str, str]


class ZoneLockRegistry:
    """Lazily created asyncio locks keyed by (vendor type, zone name)."""

    def __init__(self):
        self._locks: Dict[ZoneKey, asyncio.Lock] = {}

    def lock_for(self, key: ZoneKey) -> asyncio.Lock:
        key = (key[0], key[1].lower())
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, key: ZoneKey) -> bool:
        lock = self._locks.get((key[0], key[1].lower()))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, keys: Iterable[ZoneKey]):
        """Acquire every lock in sorted order and release them on exit."""
        ordered = sorted({(vendor, zone.lower()) for vendor, zone in keys})
        acquired = []
        try:
            for key in ordered:
                lock = self.lock_for(key)
                if lock.locked():
                    logger.info(f"Waiting for zone lock {key[0]}:{key[1]}")
                await lock.acquire()
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
