"""Redis client for media, translation request and settings persistence."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from common.config import settings
from common.schemas import MediaItem, MediaType, RequestStatus, TranslationRequest
from common.utils import StringUtils

logger = logging.getLogger(__name__)

ACTIVE_REQUESTS_KEY = "translation_requests:active"


class RedisClient:
    """
    Async Redis client shared by the services.

    Connection handling degrades gracefully (reconnects in the background),
    but the data methods raise ``redis.exceptions.ConnectionError`` when Redis
    cannot be reached: callers must never mistake an unavailable store for an
    empty one.
    """

    def __init__(self):
        """Initialize the Redis client."""
        self.client: Optional[Redis] = None
        self.connected: bool = False
        self._reconnect_lock: Optional[asyncio.Lock] = None
        self._last_health_check: Optional[datetime] = None
        self._health_check_task: Optional[asyncio.Task] = None

    @property
    def reconnect_lock(self) -> asyncio.Lock:
        """Lazy initialization of reconnect lock (must be created within event loop)."""
        if self._reconnect_lock is None:
            self._reconnect_lock = asyncio.Lock()
        return self._reconnect_lock

    async def connect(self) -> None:
        """Establish connection to Redis with retry logic."""
        for attempt in range(settings.redis_reconnect_max_retries):
            try:
                self.client = redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=10,
                )
                await asyncio.wait_for(self.client.ping(), timeout=5.0)
                self.connected = True
                self._last_health_check = datetime.now(timezone.utc)
                logger.info("✅ Connected to Redis successfully")

                if self._health_check_task is None or self._health_check_task.done():
                    self._health_check_task = asyncio.create_task(
                        self._health_check_loop()
                    )

                return
            except (RedisError, asyncio.TimeoutError) as e:
                if attempt < settings.redis_reconnect_max_retries - 1:
                    delay = min(
                        settings.redis_reconnect_initial_delay * (2**attempt),
                        settings.redis_reconnect_max_delay,
                    )
                    logger.warning(
                        f"Failed to connect to Redis (attempt {attempt + 1}/{settings.redis_reconnect_max_retries}): {e}. "
                        f"Retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        f"Failed to connect to Redis after {settings.redis_reconnect_max_retries} attempts: {e}"
                    )
                    self.connected = False

    async def disconnect(self) -> None:
        """Close connection to Redis."""
        try:
            if self._health_check_task and not self._health_check_task.done():
                self._health_check_task.cancel()
                try:
                    await self._health_check_task
                except asyncio.CancelledError:
                    pass
        finally:
            if self.client:
                try:
                    await self.client.aclose()
                except RedisError as e:
                    logger.warning(f"Error closing Redis client: {e}")
                finally:
                    self.connected = False
                    logger.info("Disconnected from Redis")

    async def _health_check_loop(self) -> None:
        """Periodic background task to monitor Redis connection health."""
        try:
            while True:
                await asyncio.sleep(settings.redis_health_check_interval)

                if not await self._check_health():
                    logger.warning("⚠️ Redis health check failed - connection unhealthy")
                    await self._reconnect_with_backoff()
        except asyncio.CancelledError:
            logger.debug("Redis health check loop cancelled")

    async def _check_health(self) -> bool:
        """Check if Redis connection is healthy."""
        if not self.client:
            return False

        try:
            await asyncio.wait_for(self.client.ping(), timeout=5.0)
            self._last_health_check = datetime.now(timezone.utc)
            return True
        except (RedisError, asyncio.TimeoutError) as e:
            logger.warning(f"Redis health check failed: {e}")
            self.connected = False
            return False

    async def _reconnect_with_backoff(self) -> None:
        """Reconnect to Redis with exponential backoff."""
        logger.info("🔄 Starting Redis reconnection process...")

        if self.client:
            try:
                await self.client.aclose()
            except RedisError:
                logger.debug("Error closing stale Redis connection", exc_info=True)
            self.client = None

        await self.connect()

        if self.connected:
            logger.info("✅ Redis reconnection successful! Connection restored.")
        else:
            logger.error("❌ Redis reconnection failed after all retry attempts")

    async def ensure_connected(self) -> bool:
        """
        Ensure Redis connection is healthy, reconnect if needed.

        Returns:
            True if connected, False otherwise
        """
        if self.connected and self.client:
            if self._last_health_check:
                seconds_since_check = (
                    datetime.now(timezone.utc) - self._last_health_check
                ).total_seconds()
                if seconds_since_check < 10:
                    return True

            try:
                await asyncio.wait_for(self.client.ping(), timeout=5.0)
                self._last_health_check = datetime.now(timezone.utc)
                return True
            except (RedisError, asyncio.TimeoutError) as e:
                logger.warning(f"⚠️ Redis connection lost: {e}")
                self.connected = False

        # Not connected, try to reconnect with lock to prevent concurrent attempts
        async with self.reconnect_lock:
            if self.connected and self.client:
                return True

            await self._reconnect_with_backoff()

        return self.connected

    async def _require_connection(self, operation: str) -> Redis:
        if not await self.ensure_connected():
            raise RedisConnectionError(f"Redis unavailable - cannot {operation}")
        return self.client

    # ------------------------------------------------------------------
    # Media records
    # ------------------------------------------------------------------

    @staticmethod
    def _media_to_hash(media: MediaItem) -> Dict[str, str]:
        return {
            "id": str(media.id),
            "path": media.path or "",
            "file_name": media.file_name,
            "media_type": media.media_type.value,
            "fingerprint": media.fingerprint or "",
        }

    @staticmethod
    def _media_from_hash(data: Dict[str, str]) -> MediaItem:
        return MediaItem(
            id=int(data["id"]),
            path=data.get("path") or None,
            file_name=data["file_name"],
            media_type=MediaType(data["media_type"]),
            fingerprint=data.get("fingerprint") or None,
        )

    async def save_media(self, media: MediaItem) -> None:
        """
        Store a media record, replacing any previous version.

        Args:
            media: Media item to store
        """
        client = await self._require_connection(f"save media {media.lock_key}")
        key = StringUtils.generate_media_key(media.media_type.value, media.id)
        await client.hset(key, mapping=self._media_to_hash(media))
        logger.debug(f"Saved media {media.lock_key}")

    async def get_media(
        self, media_type: MediaType, media_id: int
    ) -> Optional[MediaItem]:
        """
        Retrieve a media record.

        Returns:
            MediaItem if found, None otherwise
        """
        client = await self._require_connection(f"get media {media_type.value}:{media_id}")
        key = StringUtils.generate_media_key(media_type.value, media_id)
        data = await client.hgetall(key)
        if not data:
            return None
        return self._media_from_hash(data)

    async def list_media(self, media_type: Optional[MediaType] = None) -> List[MediaItem]:
        """
        List stored media records, optionally filtered by type.

        Records that fail to deserialize are logged and skipped.
        """
        client = await self._require_connection("list media")
        pattern = f"media:{media_type.value}:*" if media_type else "media:*"

        media_items = []
        async for key in client.scan_iter(match=pattern):
            data = await client.hgetall(key)
            if not data:
                continue
            try:
                media_items.append(self._media_from_hash(data))
            except (KeyError, ValueError) as e:
                logger.error(f"Failed to deserialize media from key {key}: {e}")

        media_items.sort(key=lambda item: (item.media_type.value, item.id))
        return media_items

    async def update_media_fingerprint(self, media: MediaItem, fingerprint: str) -> None:
        """
        Point update of the stored fingerprint of a media item.

        Creates the record from ``media`` when it is not stored yet.
        """
        client = await self._require_connection(f"update fingerprint of {media.lock_key}")
        key = StringUtils.generate_media_key(media.media_type.value, media.id)

        if await client.exists(key):
            await client.hset(key, "fingerprint", fingerprint)
        else:
            record = media.model_copy(update={"fingerprint": fingerprint})
            await client.hset(key, mapping=self._media_to_hash(record))

        logger.debug(f"Updated fingerprint of media {media.lock_key}")

    # ------------------------------------------------------------------
    # Translation requests
    # ------------------------------------------------------------------

    def _get_request_ttl(self, status: RequestStatus) -> int:
        """TTL in seconds for a request record, 0 for no expiration."""
        if status == RequestStatus.COMPLETED:
            return settings.redis_request_ttl_completed
        if status in (RequestStatus.FAILED, RequestStatus.CANCELLED):
            return settings.redis_request_ttl_failed
        return 0

    async def save_request(self, request: TranslationRequest) -> None:
        """Store a translation request and keep the active set in sync."""
        client = await self._require_connection(f"save request {request.id}")
        key = StringUtils.generate_request_key(str(request.id))

        async with client.pipeline(transaction=True) as pipe:
            pipe.set(key, request.model_dump_json())
            ttl = self._get_request_ttl(request.status)
            if ttl > 0:
                pipe.expire(key, ttl)
            if request.status.is_terminal:
                pipe.srem(ACTIVE_REQUESTS_KEY, str(request.id))
            else:
                pipe.sadd(ACTIVE_REQUESTS_KEY, str(request.id))
            await pipe.execute()

        logger.debug(f"Saved request {request.id} with status {request.status.value}")

    async def get_request(self, request_id: UUID) -> Optional[TranslationRequest]:
        """Retrieve a translation request, None when unknown or expired."""
        client = await self._require_connection(f"get request {request_id}")
        data = await client.get(StringUtils.generate_request_key(str(request_id)))
        if not data:
            return None
        return TranslationRequest.model_validate_json(data)

    async def count_active_requests(self) -> int:
        """Number of requests that are queued or running."""
        client = await self._require_connection("count active requests")
        return await client.scard(ACTIVE_REQUESTS_KEY)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_setting(self, name: str) -> Optional[str]:
        """Raw stored value of a setting, None when never stored."""
        client = await self._require_connection(f"get setting {name}")
        return await client.get(StringUtils.generate_setting_key(name))

    async def set_setting(self, name: str, value: str) -> None:
        client = await self._require_connection(f"set setting {name}")
        await client.set(StringUtils.generate_setting_key(name), value)
        logger.debug(f"Stored setting {name}")

    async def health_check(self) -> dict:
        """
        Check Redis connection health.

        Returns:
            Dictionary with health status information
        """
        if not self.client:
            return {
                "connected": False,
                "status": "disconnected",
                "error": "Redis client not initialized",
            }

        try:
            await self.client.ping()
            return {"connected": True, "status": "healthy"}
        except RedisError as e:
            return {"connected": False, "status": "unhealthy", "error": str(e)}


# Global Redis client instance
redis_client = RedisClient()
