"""Progress event publisher for the RabbitMQ topic exchange."""

import asyncio
import logging
from typing import Optional
from uuid import UUID

import aio_pika
from aio_pika import ExchangeType, Message
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange

from common.config import settings
from common.schemas import (
    EventType,
    GroupCompleted,
    JobProgressUpdated,
    JobStateUpdated,
    ProgressEvent,
    RequestActive,
    RequestProgress,
    RequestStatus,
    SettingUpdate,
)

logger = logging.getLogger(__name__)


class EventPublisher:
    """
    Publishes progress events to observers.

    Every event type is its own routing key, so observers bind only to what
    they render. Delivery is at-least-once from the broker's point of view;
    ordering is kept per routing key only.
    """

    def __init__(self):
        """Initialize the event publisher."""
        self.connection: Optional[AbstractConnection] = None
        self.channel: Optional[AbstractChannel] = None
        self.exchange: Optional[AbstractExchange] = None
        self.exchange_name = settings.rabbitmq_progress_exchange
        self._reconnect_lock: Optional[asyncio.Lock] = None

    @property
    def reconnect_lock(self) -> asyncio.Lock:
        """Lazy initialization of reconnect lock (must be created within event loop)."""
        if self._reconnect_lock is None:
            self._reconnect_lock = asyncio.Lock()
        return self._reconnect_lock

    async def _on_reconnect(self, connection: AbstractConnection) -> None:
        """Callback when connection is re-established."""
        logger.info("🔄 Event publisher reconnected to RabbitMQ successfully!")
        try:
            self.channel = await connection.channel()
            self.exchange = await self.channel.declare_exchange(
                self.exchange_name, ExchangeType.TOPIC, durable=True
            )
        except aio_pika.exceptions.AMQPError as e:
            logger.error(f"Failed to re-declare exchange after reconnection: {e}")

    async def connect(self, max_retries: int = 10, retry_delay: float = 3.0) -> None:
        """Establish connection to RabbitMQ and declare topic exchange with retry logic."""
        if self.connection and not self.connection.is_closed and self.exchange:
            logger.debug("Event publisher already connected, skipping connection")
            return

        for attempt in range(max_retries):
            try:
                self.connection = await aio_pika.connect_robust(settings.rabbitmq_url)
                self.connection.reconnect_callbacks.add(self._on_reconnect)

                self.channel = await self.connection.channel()
                self.exchange = await self.channel.declare_exchange(
                    self.exchange_name, ExchangeType.TOPIC, durable=True
                )

                logger.info(
                    f"✅ Event publisher connected to RabbitMQ and declared topic exchange: {self.exchange_name}"
                )
                return

            except Exception as e:
                if attempt < max_retries - 1:
                    logger.warning(
                        f"Failed to connect to RabbitMQ for event publishing "
                        f"(attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {retry_delay}s..."
                    )
                    await asyncio.sleep(retry_delay)
                else:
                    logger.warning(
                        f"Failed to connect to RabbitMQ after {max_retries} attempts: {e}"
                    )
                    logger.warning(
                        "Running in mock mode - events will be logged but not published"
                    )

    async def disconnect(self) -> None:
        """Close connection to RabbitMQ."""
        if self.connection and not self.connection.is_closed:
            try:
                await self.connection.close()
            except Exception as e:
                logger.warning(f"Error closing RabbitMQ connection: {e}")
            finally:
                logger.info("Disconnected event publisher from RabbitMQ")

    async def is_healthy(self) -> bool:
        """
        Check if RabbitMQ connection is healthy.

        Returns:
            True if connection, channel, and exchange are all present and open
        """
        if not self.connection or self.connection.is_closed:
            return False
        return self.channel is not None and self.exchange is not None

    async def _reconnect(self) -> None:
        logger.info("Starting RabbitMQ reconnection for event publisher...")

        if self.connection and not self.connection.is_closed:
            try:
                await self.connection.close()
            except Exception:
                logger.debug("Error closing stale connection", exc_info=True)

        self.connection = None
        self.channel = None
        self.exchange = None

        await self.connect(
            max_retries=settings.rabbitmq_reconnect_max_retries,
            retry_delay=settings.rabbitmq_reconnect_initial_delay,
        )

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
            await self._reconnect()

        return self.exchange is not None

    async def publish_event(
        self, event: ProgressEvent, retry_on_failure: bool = True
    ) -> bool:
        """
        Publish event to topic exchange, using the event type as routing key.

        Args:
            event: ProgressEvent to publish
            retry_on_failure: If True, attempt reconnection and retry once on failure

        Returns:
            True if successfully published (or logged in mock mode), False otherwise
        """
        if not await self.ensure_connected():
            logger.warning(
                f"Mock mode: Would publish event {event.event_type.value}"
            )
            logger.debug(f"Event data: {event.model_dump_json()}")
            return True

        routing_key = event.event_type.value
        try:
            message = Message(
                body=event.model_dump_json().encode(),
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                content_type="application/json",
            )
            await self.exchange.publish(message, routing_key=routing_key)
            logger.debug(f"Published event {routing_key}: {event.payload}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event {routing_key}: {e}")

            if retry_on_failure:
                async with self.reconnect_lock:
                    if not await self.is_healthy():
                        await self._reconnect()

                if await self.ensure_connected():
                    return await self.publish_event(event, retry_on_failure=False)

            return False

    async def _publish(self, event_type: EventType, payload) -> bool:
        return await self.publish_event(
            ProgressEvent(event_type=event_type, payload=payload.model_dump(mode="json"))
        )

    async def publish_request_progress(self, request_id: UUID, percent: int) -> bool:
        return await self._publish(
            EventType.REQUEST_PROGRESS,
            RequestProgress(request_id=request_id, percent=percent),
        )

    async def publish_request_active(self, count: int) -> bool:
        return await self._publish(EventType.REQUEST_ACTIVE, RequestActive(count=count))

    async def publish_job_progress(self, job_id: UUID, percent: int) -> bool:
        return await self._publish(
            EventType.JOB_PROGRESS_UPDATED,
            JobProgressUpdated(job_id=job_id, percent=percent),
        )

    async def publish_job_state(self, job_id: UUID, state: RequestStatus) -> bool:
        return await self._publish(
            EventType.JOB_STATE_UPDATED, JobStateUpdated(job_id=job_id, state=state)
        )

    async def publish_group_completed(self, group: str) -> bool:
        return await self._publish(EventType.GROUP_COMPLETED, GroupCompleted(group=group))

    async def publish_setting_update(self, key: str, value: str) -> bool:
        return await self._publish(
            EventType.SETTING_UPDATE, SettingUpdate(key=key, value=value)
        )


# Global event publisher instance
event_publisher = EventPublisher()
