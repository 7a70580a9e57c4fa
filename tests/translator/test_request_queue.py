"""Unit tests for TranslationRequestQueue."""

import json
from unittest.mock import AsyncMock, patch

import aio_pika
import pytest
from aio_pika.exceptions import AMQPConnectionError

from common.schemas import MediaType, RequestStatus, TranslationRequest
from translator.request_queue import TranslationRequestQueue


def make_request() -> TranslationRequest:
    return TranslationRequest(
        media_id=42,
        media_type=MediaType.MOVIE,
        subtitle_path="/media/Movie/Movie.en.srt",
        source_language="en",
        target_language="es",
        subtitle_format="srt",
    )


@pytest.fixture
def connected_queue(fake_store, mock_event_publisher, mock_rabbitmq_connection, mock_rabbitmq_channel):
    queue = TranslationRequestQueue(store=fake_store, publisher=mock_event_publisher)
    queue.connection = mock_rabbitmq_connection
    queue.channel = mock_rabbitmq_channel
    return queue


@pytest.mark.unit
@pytest.mark.asyncio
class TestSubmit:
    """Test handing requests to the workers."""

    async def test_submit_stores_and_publishes(
        self, connected_queue, fake_store, mock_rabbitmq_exchange
    ):
        request = make_request()

        handle = await connected_queue.submit(request)

        assert handle == request.id
        stored = await fake_store.get_request(request.id)
        assert stored.status == RequestStatus.QUEUED

        args, kwargs = mock_rabbitmq_exchange.publish.call_args
        message = args[0]
        assert kwargs["routing_key"] == "subtitle.translation"
        assert message.message_id == str(request.id)
        assert message.delivery_mode == aio_pika.DeliveryMode.PERSISTENT
        assert json.loads(message.body)["target_language"] == "es"

    async def test_submit_announces_active_count(self, connected_queue, mock_event_publisher):
        await connected_queue.submit(make_request())
        await connected_queue.submit(make_request())

        assert mock_event_publisher.publish_request_active.await_args_list[-1].args == (2,)

    async def test_publish_failure_marks_request_failed(
        self, connected_queue, fake_store, mock_rabbitmq_exchange, mock_event_publisher
    ):
        mock_rabbitmq_exchange.publish.side_effect = RuntimeError("channel closed")
        request = make_request()

        with pytest.raises(RuntimeError):
            await connected_queue.submit(request)

        stored = await fake_store.get_request(request.id)
        assert stored.status == RequestStatus.FAILED
        assert "Failed to enqueue" in stored.error_message
        assert await fake_store.count_active_requests() == 0
        mock_event_publisher.publish_request_active.assert_not_awaited()

    async def test_unreachable_broker_marks_request_failed(self, fake_store, mock_event_publisher):
        queue = TranslationRequestQueue(store=fake_store, publisher=mock_event_publisher)
        queue.ensure_connected = AsyncMock(return_value=False)
        request = make_request()

        with pytest.raises(AMQPConnectionError):
            await queue.submit(request)

        stored = await fake_store.get_request(request.id)
        assert stored.status == RequestStatus.FAILED
        assert stored.error_message.startswith("Failed to enqueue")
        assert await fake_store.count_active_requests() == 0
        mock_event_publisher.publish_request_active.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
class TestConnection:
    async def test_connect_declares_durable_queue(
        self, fake_store, mock_rabbitmq_connection, mock_rabbitmq_channel
    ):
        publisher = AsyncMock()
        publisher.connection = None
        queue = TranslationRequestQueue(store=fake_store, publisher=publisher)
        mock_rabbitmq_connection.channel = AsyncMock(return_value=mock_rabbitmq_channel)

        with patch(
            "translator.request_queue.aio_pika.connect_robust",
            return_value=mock_rabbitmq_connection,
        ):
            await queue.connect()

        mock_rabbitmq_channel.declare_queue.assert_awaited_once_with(
            "subtitle.translation", durable=True
        )
        publisher.connect.assert_awaited_once()
        assert await queue.is_healthy()

    async def test_not_healthy_without_connection(self, fake_store, mock_event_publisher):
        queue = TranslationRequestQueue(store=fake_store, publisher=mock_event_publisher)

        assert not await queue.is_healthy()

    async def test_disconnect_closes_connection_and_publisher(
        self, connected_queue, mock_rabbitmq_connection, mock_event_publisher
    ):
        await connected_queue.disconnect()

        mock_rabbitmq_connection.close.assert_awaited_once()
        mock_event_publisher.disconnect.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
class TestQueueStatus:
    async def test_queue_status(self, connected_queue):
        await connected_queue.submit(make_request())

        status = await connected_queue.get_queue_status()

        assert status == {"queue_size": 0, "active_requests": 1}

    async def test_queue_status_without_broker(self, fake_store, mock_event_publisher):
        queue = TranslationRequestQueue(store=fake_store, publisher=mock_event_publisher)
        queue.ensure_connected = AsyncMock(return_value=False)

        assert await queue.get_queue_status() == {"queue_size": 0, "active_requests": 0}
