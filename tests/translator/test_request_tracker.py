"""Unit tests for TranslationRequestTracker."""

from uuid import uuid4

import pytest
import pytest_asyncio

from common.exceptions import InvalidRequestTransitionError, RequestNotFoundError
from common.schemas import MediaType, RequestStatus, TranslationRequest
from translator.request_tracker import TranslationRequestTracker


@pytest.fixture
def tracker(fake_store, mock_event_publisher):
    return TranslationRequestTracker(store=fake_store, publisher=mock_event_publisher)


@pytest_asyncio.fixture
async def queued_request(fake_store):
    request = TranslationRequest(
        media_id=42,
        media_type=MediaType.MOVIE,
        subtitle_path="/media/Movie/Movie.en.srt",
        source_language="en",
        target_language="es",
        subtitle_format="srt",
    )
    await fake_store.save_request(request)
    return request


@pytest.mark.unit
@pytest.mark.asyncio
class TestLifecycle:
    """Test request state transitions."""

    async def test_mark_running(self, tracker, queued_request, fake_store, mock_event_publisher):
        updated = await tracker.mark_running(queued_request.id)

        assert updated.status == RequestStatus.RUNNING
        assert (await fake_store.get_request(queued_request.id)).status == RequestStatus.RUNNING
        mock_event_publisher.publish_job_state.assert_awaited_once_with(
            queued_request.id, RequestStatus.RUNNING
        )
        mock_event_publisher.publish_request_active.assert_not_awaited()

    async def test_mark_completed_leaves_active_set(
        self, tracker, queued_request, fake_store, mock_event_publisher
    ):
        await tracker.mark_running(queued_request.id)

        updated = await tracker.mark_completed(queued_request.id)

        assert updated.status == RequestStatus.COMPLETED
        assert updated.progress == 100
        assert await fake_store.count_active_requests() == 0
        mock_event_publisher.publish_request_active.assert_awaited_once_with(0)

    async def test_mark_failed_records_error(self, tracker, queued_request, fake_store):
        await tracker.mark_failed(queued_request.id, "model unavailable")

        stored = await fake_store.get_request(queued_request.id)
        assert stored.status == RequestStatus.FAILED
        assert stored.error_message == "model unavailable"

    async def test_mark_cancelled(self, tracker, queued_request):
        updated = await tracker.mark_cancelled(queued_request.id)

        assert updated.status == RequestStatus.CANCELLED

    @pytest.mark.parametrize("terminal", ["mark_completed", "mark_cancelled"])
    async def test_terminal_state_is_final(self, tracker, queued_request, terminal):
        await getattr(tracker, terminal)(queued_request.id)

        with pytest.raises(InvalidRequestTransitionError):
            await tracker.mark_running(queued_request.id)

    async def test_unknown_request(self, tracker):
        with pytest.raises(RequestNotFoundError):
            await tracker.mark_running(uuid4())


@pytest.mark.unit
@pytest.mark.asyncio
class TestProgress:
    """Test progress reporting."""

    async def test_report_progress_publishes_both_events(
        self, tracker, queued_request, mock_event_publisher
    ):
        await tracker.mark_running(queued_request.id)

        updated = await tracker.report_progress(queued_request.id, 42.7)

        assert updated.progress == 42
        mock_event_publisher.publish_request_progress.assert_awaited_once_with(
            queued_request.id, 42
        )
        mock_event_publisher.publish_job_progress.assert_awaited_once_with(
            queued_request.id, 42
        )

    @pytest.mark.parametrize("raw,expected", [(-10, 0), (250, 100)])
    async def test_progress_is_clamped(self, tracker, queued_request, raw, expected):
        await tracker.mark_running(queued_request.id)

        updated = await tracker.report_progress(queued_request.id, raw)

        assert updated.progress == expected

    async def test_progress_requires_running_request(self, tracker, queued_request):
        with pytest.raises(InvalidRequestTransitionError):
            await tracker.report_progress(queued_request.id, 10)
