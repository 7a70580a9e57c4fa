"""Lifecycle updates reported by the translation workers."""

import logging
from typing import Optional
from uuid import UUID

from common.event_publisher import EventPublisher, event_publisher
from common.exceptions import InvalidRequestTransitionError, RequestNotFoundError
from common.redis_client import RedisClient, redis_client
from common.schemas import RequestStatus, TranslationRequest
from common.utils import DateTimeUtils, MathUtils

logger = logging.getLogger(__name__)


class TranslationRequestTracker:
    """
    Moves requests through queued -> running -> completed/failed/cancelled.

    Each change is stored and announced on the progress channel: the state
    change itself, progress percentages, and the active request count when a
    request leaves the active set.
    """

    def __init__(
        self,
        store: Optional[RedisClient] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        self.store = store or redis_client
        self.publisher = publisher or event_publisher

    async def _load(self, request_id: UUID) -> TranslationRequest:
        request = await self.store.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    async def _transition(
        self,
        request_id: UUID,
        status: RequestStatus,
        **changes,
    ) -> TranslationRequest:
        request = await self._load(request_id)
        if request.status.is_terminal:
            raise InvalidRequestTransitionError(
                request_id, request.status.value, status.value
            )

        updated = request.model_copy(
            update={
                "status": status,
                "updated_at": DateTimeUtils.get_current_utc_datetime(),
                **changes,
            }
        )
        await self.store.save_request(updated)
        await self.publisher.publish_job_state(request_id, status)

        if status.is_terminal:
            await self.publisher.publish_request_active(
                await self.store.count_active_requests()
            )

        logger.info(f"Translation request {request_id} is now {status.value}")
        return updated

    async def mark_running(self, request_id: UUID) -> TranslationRequest:
        return await self._transition(request_id, RequestStatus.RUNNING)

    async def report_progress(self, request_id: UUID, percent: float) -> TranslationRequest:
        """Store and publish the progress of a running request."""
        request = await self._load(request_id)
        if request.status != RequestStatus.RUNNING:
            raise InvalidRequestTransitionError(
                request_id, request.status.value, RequestStatus.RUNNING.value
            )

        progress = MathUtils.clamp_percentage(percent)
        updated = request.model_copy(
            update={
                "progress": progress,
                "updated_at": DateTimeUtils.get_current_utc_datetime(),
            }
        )
        await self.store.save_request(updated)
        await self.publisher.publish_request_progress(request_id, progress)
        await self.publisher.publish_job_progress(request_id, progress)
        return updated

    async def mark_completed(self, request_id: UUID) -> TranslationRequest:
        return await self._transition(request_id, RequestStatus.COMPLETED, progress=100)

    async def mark_failed(self, request_id: UUID, error_message: str) -> TranslationRequest:
        logger.warning(f"Translation request {request_id} failed: {error_message}")
        return await self._transition(
            request_id, RequestStatus.FAILED, error_message=error_message
        )

    async def mark_cancelled(self, request_id: UUID) -> TranslationRequest:
        return await self._transition(request_id, RequestStatus.CANCELLED)


# Global tracker instance
request_tracker = TranslationRequestTracker()
