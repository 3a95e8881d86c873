#!/usr/bin/env python3
"""
Per-resource mutual exclusion for capacity changes
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class ResourceLockRegistry:
    """
    Keyed lock registry: one asyncio.Lock per resource id, created on first
    use and never removed, so unrelated resources never contend.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, resource_id: str) -> asyncio.Lock:
        # setdefault is atomic with respect to the event loop
        return self._locks.setdefault(resource_id, asyncio.Lock())

    @asynccontextmanager
    async def acquire(self, resource_id: str) -> AsyncIterator[None]:
        """Hold the resource's lock for the duration of the block"""
        lock = self._lock_for(resource_id)
        if lock.locked():
            logger.debug(f"Waiting for in-flight scaling on {resource_id}")
        async with lock:
            yield
