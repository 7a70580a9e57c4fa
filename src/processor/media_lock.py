"""Mutual exclusion per media item."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from uuid import uuid4

from redis.exceptions import RedisError, WatchError

from common.config import settings
from common.redis_client import RedisClient, redis_client

logger = logging.getLogger(__name__)


class MediaLockManager:
    """
    Serializes processing of the same media item.

    Within a process an ``asyncio.Lock`` per key is used. When distributed
    locking is enabled a Redis lease is held as well, so scanners running in
    separate processes serialize too. The lease expires after
    ``media_lock_ttl_seconds`` if its holder dies.
    """

    def __init__(
        self,
        store: Optional[RedisClient] = None,
        distributed: Optional[bool] = None,
    ):
        self.store = store or redis_client
        self.distributed = (
            settings.media_lock_distributed if distributed is None else distributed
        )
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @staticmethod
    def _lease_key(key: str) -> str:
        return f"lock:media:{key}"

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                token = await self._acquire_lease(key)
                try:
                    yield
                finally:
                    if token:
                        await self._release_lease(key, token)
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    async def _acquire_lease(self, key: str) -> Optional[str]:
        if not self.distributed:
            return None

        if not await self.store.ensure_connected():
            logger.warning(
                f"Redis unavailable - media {key} is locked in this process only"
            )
            return None

        lease_key = self._lease_key(key)
        token = uuid4().hex
        ttl_ms = settings.media_lock_ttl_seconds * 1000

        while not await self.store.client.set(lease_key, token, nx=True, px=ttl_ms):
            await asyncio.sleep(settings.media_lock_poll_interval)

        logger.debug(f"Acquired lease {lease_key}")
        return token

    async def _release_lease(self, key: str, token: str) -> None:
        lease_key = self._lease_key(key)
        try:
            async with self.store.client.pipeline(transaction=True) as pipe:
                await pipe.watch(lease_key)
                current = await pipe.get(lease_key)
                if current != token:
                    await pipe.unwatch()
                    logger.warning(f"Lease {lease_key} expired before it was released")
                    return
                pipe.multi()
                pipe.delete(lease_key)
                await pipe.execute()
            logger.debug(f"Released lease {lease_key}")
        except (WatchError, RedisError) as e:
            logger.warning(f"Failed to release lease {lease_key}, it will expire: {e}")


# Global lock manager instance
media_locks = MediaLockManager()
