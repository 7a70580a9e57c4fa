"""Drive subtitle processing over the media library."""

import asyncio
import logging
from collections import Counter
from typing import Iterable, Optional

from common.config import settings
from common.event_publisher import EventPublisher, event_publisher
from common.redis_client import RedisClient, redis_client
from common.schemas import MediaItem, MediaType, ProcessResult, ScanSummary
from processor.media_processor import MediaSubtitleProcessor, media_processor

logger = logging.getLogger(__name__)

LIBRARY_SCAN_GROUP = "library_scan"


class LibraryScanner:
    """
    Runs the media processor over many media items concurrently.

    The scanner owns failure policy for a batch: an error processing one
    media item is logged and counted, and the remaining items still run.
    """

    def __init__(
        self,
        processor: Optional[MediaSubtitleProcessor] = None,
        store: Optional[RedisClient] = None,
        publisher: Optional[EventPublisher] = None,
        max_concurrency: Optional[int] = None,
    ):
        self.processor = processor or media_processor
        self.store = store or redis_client
        self.publisher = publisher or event_publisher
        self.max_concurrency = max_concurrency or settings.scanner_max_concurrency

    async def scan(self, media_items: Iterable[MediaItem]) -> ScanSummary:
        """
        Process every media item and summarize the outcomes.

        Args:
            media_items: Media items to process

        Returns:
            ScanSummary with per-outcome counts and failed media keys
        """
        items = list(media_items)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process_one(media: MediaItem) -> ProcessResult:
            async with semaphore:
                return await self.processor.process_media(media)

        logger.info(f"🔍 Processing subtitles for {len(items)} media items")
        results = await asyncio.gather(
            *(process_one(media) for media in items), return_exceptions=True
        )

        summary = ScanSummary(total=len(items))
        outcomes = Counter()
        for media, result in zip(items, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"Failed to process subtitles for {media.lock_key}: {result}",
                    exc_info=result,
                )
                summary.failed += 1
                summary.failed_media.append(media.lock_key)
                continue
            outcomes[result.outcome] += 1
            summary.requests_created += result.requests_created

        summary.outcomes = dict(outcomes)
        logger.info(
            f"✅ Scan complete: {summary.total} media, "
            f"{summary.requests_created} translation requests, {summary.failed} failed"
        )

        await self.publisher.publish_group_completed(LIBRARY_SCAN_GROUP)
        return summary

    async def scan_library(self, media_type: Optional[MediaType] = None) -> ScanSummary:
        """Scan every stored media record, optionally only one media type."""
        media_items = await self.store.list_media(media_type)
        return await self.scan(media_items)


# Global scanner instance
library_scanner = LibraryScanner()
