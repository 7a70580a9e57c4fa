"""FastAPI application for the subtitle translation service."""

from contextlib import asynccontextmanager
from typing import Any, Dict, List
from uuid import UUID

from aio_pika.exceptions import AMQPError
from fastapi import FastAPI, HTTPException, Response, status
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from common.config import settings
from common.exceptions import UnknownSettingError
from common.language_settings import (
    SOURCE_LANGUAGES,
    TARGET_LANGUAGES,
    language_settings,
)
from common.logging_config import setup_service_logging
from common.redis_client import redis_client
from common.schemas import (
    Language,
    MediaItem,
    MediaType,
    ProcessResult,
    TranslationRequest,
)
from manager.health import check_health
from manager.schemas import (
    ActiveRequestsResponse,
    LanguageSettingsResponse,
    MediaRegistration,
    QueueStatusResponse,
)
from processor.media_processor import media_processor
from translator.request_queue import translation_queue

# Configure logging
service_logger = setup_service_logging("manager", enable_file_logging=True)
logger = service_logger.logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info("Starting subtitle translation API...")
    await redis_client.connect()
    await translation_queue.connect()
    logger.info("API startup complete")

    yield

    logger.info("Shutting down subtitle translation API...")
    await translation_queue.disconnect()
    await redis_client.disconnect()


app = FastAPI(
    title="Subtitle Translation API",
    description="API for detecting missing subtitle languages and dispatching translations",
    version="1.0.0",
    lifespan=lifespan,
)

allowed_origins = (
    [origin.strip() for origin in settings.cors_allowed_origins.split(",")]
    if settings.cors_allowed_origins
    else ["http://localhost:3000"]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "Authorization"],
)


def _store_unavailable(e: RedisError) -> HTTPException:
    logger.error(f"Store unavailable: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Store unavailable",
    )


def _invalid_settings(e: ValueError) -> HTTPException:
    logger.error(f"Stored language settings are invalid: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Stored language settings are invalid",
    )


@app.get("/", response_model=Dict[str, str])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Subtitle Translation API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health", response_model=Dict[str, Any])
async def health_check_endpoint(response: Response):
    """Health of Redis, the translation queue and the progress publisher."""
    health_status = await check_health()

    if health_status.get("status") == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif health_status.get("status") == "error":
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return health_status


@app.put("/api/media", response_model=MediaItem)
async def register_media(registration: MediaRegistration):
    """Create or update a media record, keeping its stored fingerprint."""
    try:
        existing = await redis_client.get_media(registration.media_type, registration.id)
        media = registration.to_media_item(existing.fingerprint if existing else None)
        await redis_client.save_media(media)
    except RedisError as e:
        raise _store_unavailable(e)

    logger.info(f"Registered media {media.lock_key} ({media.file_name})")
    return media


@app.get("/api/media/{media_type}/{media_id}", response_model=MediaItem)
async def get_media(media_type: MediaType, media_id: int):
    try:
        media = await redis_client.get_media(media_type, media_id)
    except RedisError as e:
        raise _store_unavailable(e)

    if not media:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Media not found"
        )
    return media


@app.post("/api/media/{media_type}/{media_id}/process", response_model=ProcessResult)
async def process_media(media_type: MediaType, media_id: int):
    """
    Create translation requests for the subtitle languages a media item misses.

    Returns the branch the processing took; repeated calls for unchanged
    subtitles report ``unchanged`` and create nothing.
    """
    try:
        media = await redis_client.get_media(media_type, media_id)
        if not media:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Media not found"
            )
        return await media_processor.process_media(media)
    except RedisError as e:
        raise _store_unavailable(e)
    except AMQPError as e:
        logger.error(f"Translation queue unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Translation queue unavailable",
        )
    except OSError as e:
        logger.warning(f"Cannot read subtitles of {media_type.value}:{media_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Cannot read media path: {e}",
        )
    except ValueError as e:
        raise _invalid_settings(e)


@app.get("/api/translation-requests/active", response_model=ActiveRequestsResponse)
async def get_active_request_count():
    try:
        count = await redis_client.count_active_requests()
    except RedisError as e:
        raise _store_unavailable(e)
    return ActiveRequestsResponse(count=count)


@app.get("/api/translation-queue/status", response_model=QueueStatusResponse)
async def get_queue_status():
    """Translation messages waiting in RabbitMQ and requests not yet finished."""
    try:
        return QueueStatusResponse(**await translation_queue.get_queue_status())
    except RedisError as e:
        raise _store_unavailable(e)


@app.get("/api/translation-requests/{request_id}", response_model=TranslationRequest)
async def get_translation_request(request_id: UUID):
    try:
        request = await redis_client.get_request(request_id)
    except RedisError as e:
        raise _store_unavailable(e)

    if not request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Translation request not found",
        )
    return request


@app.get("/api/settings/languages", response_model=LanguageSettingsResponse)
async def get_language_settings():
    try:
        return LanguageSettingsResponse(
            source_languages=await language_settings.get_languages(SOURCE_LANGUAGES),
            target_languages=await language_settings.get_languages(TARGET_LANGUAGES),
        )
    except RedisError as e:
        raise _store_unavailable(e)
    except ValueError as e:
        raise _invalid_settings(e)


@app.put("/api/settings/languages/{key}", response_model=List[Language])
async def update_language_setting(key: str, languages: List[Language]):
    """Replace the source or target language list."""
    try:
        return await language_settings.update_language_setting(key, languages)
    except UnknownSettingError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        )
    except RedisError as e:
        raise _store_unavailable(e)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("manager.main:app", host=settings.api_host, port=settings.api_port)
