#!/usr/bin/env python3
"""
Redis-backed per-resource locks for engines running in several processes
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
from redis.exceptions import LockError

from ..config.settings import settings, RedisSettings
from ..core.locks import ResourceLockRegistry

logger = logging.getLogger(__name__)


class RedisLockRegistry:
    """
    Distributed counterpart of ResourceLockRegistry.

    Callers in the same process queue on a local lock first, so only one of
    them polls Redis for a given resource at a time.
    """

    def __init__(self, redis_settings: Optional[RedisSettings] = None,
                 lock_timeout: Optional[int] = None, client: Optional[aioredis.Redis] = None):
        """
        Initialize Redis lock registry

        Args:
            redis_settings: Connection settings and key prefix
            lock_timeout: Seconds after which a lock held by a dead process expires
            client: Optional pre-built redis.asyncio client
        """
        self.settings = redis_settings or settings.redis
        self.key_prefix = self.settings.key_prefix
        self.lock_timeout = lock_timeout or settings.executor.lock_timeout_seconds
        self.client = client or aioredis.Redis(
            host=self.settings.host,
            port=self.settings.port,
            db=self.settings.db,
            password=self.settings.password,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
        self.local = ResourceLockRegistry()

    def _make_key(self, resource_id: str) -> str:
        """Add prefix to key"""
        return f"{self.key_prefix}scaling_lock:{resource_id}"

    @asynccontextmanager
    async def acquire(self, resource_id: str) -> AsyncIterator[None]:
        async with self.local.acquire(resource_id):
            lock = self.client.lock(self._make_key(resource_id), timeout=self.lock_timeout, sleep=0.1)
            await lock.acquire()
            try:
                yield
            finally:
                try:
                    await lock.release()
                except LockError as e:
                    # Expired while held; another process may already own it
                    logger.warning(f"Scaling lock for {resource_id} was lost before release: {e}")

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis connection closed")
