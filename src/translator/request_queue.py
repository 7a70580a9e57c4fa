"""Producer side of the translation request queue."""

import asyncio
import logging
from typing import Optional
from uuid import UUID

import aio_pika
from aio_pika import Message
from aio_pika.abc import AbstractChannel, AbstractConnection
from aio_pika.exceptions import AMQPConnectionError

from common.config import settings
from common.event_publisher import EventPublisher, event_publisher
from common.redis_client import RedisClient, redis_client
from common.schemas import RequestStatus, TranslationRequest
from common.utils import DateTimeUtils

logger = logging.getLogger(__name__)


class TranslationRequestQueue:
    """Hands translation requests to the translation workers over RabbitMQ."""

    def __init__(
        self,
        store: Optional[RedisClient] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        self.connection: Optional[AbstractConnection] = None
        self.channel: Optional[AbstractChannel] = None
        self.queue_name = settings.rabbitmq_translation_queue_routing_key
        self.store = store or redis_client
        self.publisher = publisher or event_publisher
        self._reconnect_lock: Optional[asyncio.Lock] = None

    @property
    def reconnect_lock(self) -> asyncio.Lock:
        """Lazy initialization of reconnect lock (must be created within event loop)."""
        if self._reconnect_lock is None:
            self._reconnect_lock = asyncio.Lock()
        return self._reconnect_lock

    async def connect(self, max_retries: int = 10, retry_delay: float = 3.0) -> None:
        """
        Establish connection to RabbitMQ with retry logic.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Delay between retries in seconds
        """
        for attempt in range(max_retries):
            try:
                self.connection = await aio_pika.connect_robust(settings.rabbitmq_url)
                self.channel = await self.connection.channel()
                await self.channel.declare_queue(self.queue_name, durable=True)

                if not self.publisher.connection or self.publisher.connection.is_closed:
                    await self.publisher.connect(max_retries=max_retries, retry_delay=retry_delay)

                logger.info("✅ Translation queue connected to RabbitMQ successfully")
                return

            except Exception as e:
                if attempt < max_retries - 1:
                    logger.warning(
                        f"Failed to connect to RabbitMQ (attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {retry_delay}s..."
                    )
                    await asyncio.sleep(retry_delay)
                else:
                    logger.warning(f"Failed to connect to RabbitMQ after {max_retries} attempts: {e}")
                    logger.warning(
                        "Translation queue unavailable - submitted requests will be recorded as failed"
                    )

    async def disconnect(self) -> None:
        """Close connection to RabbitMQ."""
        await self.publisher.disconnect()

        if self.connection and not self.connection.is_closed:
            await self.connection.close()
            logger.info("Translation queue disconnected from RabbitMQ")

    async def is_healthy(self) -> bool:
        """
        Check if the queue is connected to RabbitMQ.

        Returns:
            True if connection and channel are healthy, False otherwise
        """
        if not self.connection or self.connection.is_closed:
            return False
        return self.channel is not None

    async def ensure_connected(self) -> bool:
        """
        Ensure RabbitMQ connection is healthy, reconnect if needed.

        Returns:
            True if connected, False otherwise
        """
        if await self.is_healthy():
            return True

        async with self.reconnect_lock:
            if await self.is_healthy():
                return True

            logger.info("Translation queue connection unhealthy, attempting to reconnect...")
            await self.reconnect()

        return await self.is_healthy()

    async def reconnect(self) -> None:
        """Drop the current connection and connect again."""
        if self.connection and not self.connection.is_closed:
            try:
                await self.connection.close()
            except Exception as e:
                logger.debug(f"Error closing stale connection: {e}")

        self.connection = None
        self.channel = None

        await self.connect(
            max_retries=settings.rabbitmq_reconnect_max_retries,
            retry_delay=settings.rabbitmq_reconnect_initial_delay,
        )

    async def submit(self, request: TranslationRequest) -> UUID:
        """
        Store and enqueue a translation request.

        The request is recorded as queued before it is published, then the
        new active count is announced to observers. A request that cannot be
        handed to the broker is recorded as failed and the error is raised,
        so the caller can retry on a later run.

        Args:
            request: Request to hand to the workers

        Returns:
            The request id, which doubles as the job handle

        Raises:
            redis.exceptions.RedisError: If the request cannot be recorded
            aio_pika.exceptions.AMQPConnectionError: If RabbitMQ is unreachable
            aio_pika.exceptions.AMQPError: If publishing fails
        """
        await self.store.save_request(request)

        if not await self.ensure_connected():
            error = AMQPConnectionError("RabbitMQ unavailable")
            logger.error(f"Cannot enqueue translation request {request.id}: {error}")
            await self._record_failure(request, error)
            raise error

        message = Message(
            body=request.model_dump_json().encode(),
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            content_type="application/json",
            message_id=str(request.id),
        )
        try:
            await self.channel.default_exchange.publish(
                message, routing_key=self.queue_name
            )
        except Exception as e:
            logger.error(f"Failed to enqueue translation request {request.id}: {e}")
            await self._record_failure(request, e)
            raise

        logger.info(f"Translation request {request.id} enqueued")

        await self.publisher.publish_request_active(
            await self.store.count_active_requests()
        )
        return request.id

    async def _record_failure(self, request: TranslationRequest, error: Exception) -> None:
        await self.store.save_request(
            request.model_copy(
                update={
                    "status": RequestStatus.FAILED,
                    "error_message": f"Failed to enqueue: {error}",
                    "updated_at": DateTimeUtils.get_current_utc_datetime(),
                }
            )
        )

    async def get_queue_status(self) -> dict:
        """Messages waiting in the queue and requests not yet finished."""
        active = await self.store.count_active_requests()

        if not await self.ensure_connected():
            return {"queue_size": 0, "active_requests": active}

        try:
            queue = await self.channel.declare_queue(self.queue_name, passive=True)
            queue_size = queue.declaration_result.message_count
        except Exception as e:
            logger.error(f"Failed to get queue status: {e}")
            queue_size = 0

        return {"queue_size": queue_size, "active_requests": active}


# Global queue instance
translation_queue = TranslationRequestQueue()
