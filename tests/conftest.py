"""Pytest configuration and shared fixtures."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Iterable, List
from unittest.mock import AsyncMock, MagicMock

import aio_pika
import fakeredis.aioredis
import pytest
import pytest_asyncio

# Add src directory to Python path for imports
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from common.event_publisher import EventPublisher  # noqa: E402
from common.language_settings import (  # noqa: E402
    SOURCE_LANGUAGES,
    TARGET_LANGUAGES,
    LanguageSettingsResolver,
)
from common.redis_client import RedisClient  # noqa: E402
from common.schemas import MediaItem, MediaType, TranslationRequest  # noqa: E402
from common.subtitle_inventory import SubtitleInventory  # noqa: E402
from processor.dispatcher import TranslationDispatcher  # noqa: E402
from processor.media_lock import MediaLockManager  # noqa: E402
from processor.media_processor import MediaSubtitleProcessor  # noqa: E402

MEDIA_NAME = "Movie (2020)"


class RecordingQueue:
    """Translation queue stand-in that records submissions."""

    def __init__(self):
        self.submitted: List[TranslationRequest] = []

    async def submit(self, request: TranslationRequest):
        # Yield like a real network call would
        await asyncio.sleep(0)
        self.submitted.append(request)
        return request.id


@pytest_asyncio.fixture
async def fake_redis_client():
    """Fake Redis connection using fakeredis."""
    fake_redis = fakeredis.aioredis.FakeRedis(decode_responses=True, encoding="utf-8")
    yield fake_redis
    await fake_redis.flushall()
    await fake_redis.aclose()


@pytest_asyncio.fixture
async def fake_store(fake_redis_client):
    """RedisClient wired to fakeredis."""
    client = RedisClient()
    client.client = fake_redis_client
    client.connected = True
    yield client
    client.connected = False


@pytest.fixture
def disconnected_store():
    """RedisClient that can never reach Redis."""
    client = RedisClient()
    client.ensure_connected = AsyncMock(return_value=False)
    return client


@pytest.fixture
def mock_event_publisher():
    """Event publisher with every publish method mocked."""
    return AsyncMock(spec=EventPublisher)


@pytest.fixture
def mock_rabbitmq_connection():
    """Mock RabbitMQ connection for testing."""
    mock_connection = AsyncMock(spec=aio_pika.abc.AbstractConnection)
    mock_connection.is_closed = False
    mock_connection.close = AsyncMock()
    mock_connection.reconnect_callbacks = MagicMock()
    return mock_connection


@pytest.fixture
def mock_rabbitmq_exchange():
    """Mock RabbitMQ exchange for testing."""
    mock_exchange = AsyncMock(spec=aio_pika.abc.AbstractExchange)
    mock_exchange.publish = AsyncMock()
    return mock_exchange


@pytest.fixture
def mock_rabbitmq_channel(mock_rabbitmq_exchange):
    """Mock RabbitMQ channel for testing."""
    mock_channel = AsyncMock(spec=aio_pika.abc.AbstractChannel)

    mock_queue = AsyncMock(spec=aio_pika.abc.AbstractQueue)
    mock_queue.declaration_result = MagicMock()
    mock_queue.declaration_result.message_count = 0
    mock_channel.declare_queue = AsyncMock(return_value=mock_queue)
    mock_channel.declare_exchange = AsyncMock(return_value=mock_rabbitmq_exchange)
    mock_channel.default_exchange = mock_rabbitmq_exchange
    mock_channel.close = AsyncMock()

    return mock_channel


@pytest.fixture
def media_dir(tmp_path):
    """Directory standing in for a movie folder."""
    directory = tmp_path / MEDIA_NAME
    directory.mkdir()
    return directory


@pytest.fixture
def write_subtitles(media_dir):
    """Create subtitle files (and anything else) in the media directory."""

    def _write(names: Iterable[str]) -> List[Path]:
        paths = []
        for name in names:
            path = media_dir / name
            path.write_text("1\n00:00:01,000 --> 00:00:02,000\nHello\n")
            paths.append(path)
        return paths

    return _write


@pytest.fixture
def movie(media_dir):
    return MediaItem(
        id=42,
        path=str(media_dir),
        file_name=MEDIA_NAME,
        media_type=MediaType.MOVIE,
    )


@pytest.fixture
def language_resolver(fake_store, mock_event_publisher):
    return LanguageSettingsResolver(store=fake_store, publisher=mock_event_publisher)


@pytest.fixture
def configure_languages(fake_store):
    """Store source and target language codes."""

    async def _configure(source: Iterable[str], target: Iterable[str]) -> None:
        await fake_store.set_setting(
            SOURCE_LANGUAGES, json.dumps([{"name": "", "code": c} for c in source])
        )
        await fake_store.set_setting(
            TARGET_LANGUAGES, json.dumps([{"name": "", "code": c} for c in target])
        )

    return _configure


@pytest.fixture
def recording_queue():
    return RecordingQueue()


@pytest.fixture
def processor(fake_store, language_resolver, recording_queue):
    """MediaSubtitleProcessor wired to fakeredis and a recording queue."""
    return MediaSubtitleProcessor(
        inventory=SubtitleInventory(),
        settings_resolver=language_resolver,
        dispatcher=TranslationDispatcher(request_queue=recording_queue),
        store=fake_store,
        locks=MediaLockManager(store=fake_store),
    )
