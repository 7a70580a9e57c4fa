"""Detect missing subtitle translations for a media item and dispatch them."""

import logging
from typing import List, Optional, Tuple

from common.language_settings import LanguageSettingsResolver, language_settings
from common.redis_client import RedisClient, redis_client
from common.schemas import (
    MediaItem,
    ProcessOutcome,
    ProcessResult,
    SkipReason,
    SubtitleFile,
)
from common.subtitle_inventory import SubtitleInventory, subtitle_inventory
from processor.dispatcher import TranslationDispatcher
from processor.fingerprint import compute_fingerprint, fingerprint_changed
from processor.gap_resolver import resolve_gap
from processor.media_lock import MediaLockManager, media_locks

logger = logging.getLogger(__name__)


class MediaSubtitleProcessor:
    """
    Creates the translation requests a media item is missing.

    A run goes through four stages: inventory, fingerprint check, gap
    resolution and dispatch. The fingerprint of the subtitle set is stored on
    every branch past the fingerprint check, so an unchanged media item is
    never processed twice. Runs for the same media item are serialized.

    Inventory, settings and store failures propagate to the caller.
    """

    def __init__(
        self,
        inventory: Optional[SubtitleInventory] = None,
        settings_resolver: Optional[LanguageSettingsResolver] = None,
        dispatcher: Optional[TranslationDispatcher] = None,
        store: Optional[RedisClient] = None,
        locks: Optional[MediaLockManager] = None,
    ):
        self.inventory = inventory or subtitle_inventory
        self.settings_resolver = settings_resolver or language_settings
        self.dispatcher = dispatcher or TranslationDispatcher()
        self.store = store or redis_client
        self.locks = locks or media_locks

    async def process_media(self, media: MediaItem) -> ProcessResult:
        """
        Process the subtitles of one media item.

        Args:
            media: Media item to process

        Returns:
            ProcessResult naming the branch taken and the number of requests
            submitted
        """
        if not media.path:
            logger.debug(f"Media {media.lock_key} has no path, skipping")
            return ProcessResult(
                media_id=media.id,
                media_type=media.media_type,
                outcome=ProcessOutcome.NO_PATH,
            )

        async with self.locks.hold(media.lock_key):
            subtitles = await self._find_matching_subtitles(media)
            if not subtitles:
                logger.debug(f"No subtitles match {media.file_name}, skipping")
                return ProcessResult(
                    media_id=media.id,
                    media_type=media.media_type,
                    outcome=ProcessOutcome.NO_MATCHING_SUBTITLES,
                )

            fingerprint = compute_fingerprint(subtitles)
            stored_fingerprint = await self._get_stored_fingerprint(media)
            if not fingerprint_changed(fingerprint, stored_fingerprint):
                logger.debug(f"Subtitles of {media.file_name} unchanged, skipping")
                return ProcessResult(
                    media_id=media.id,
                    media_type=media.media_type,
                    outcome=ProcessOutcome.UNCHANGED,
                    fingerprint=fingerprint,
                )

            logger.info(f"Initiating subtitle processing for {media.file_name}")
            outcome, requests_created = await self._resolve_and_dispatch(
                media, subtitles
            )

            await self.store.update_media_fingerprint(media, fingerprint)

            return ProcessResult(
                media_id=media.id,
                media_type=media.media_type,
                outcome=outcome,
                requests_created=requests_created,
                fingerprint=fingerprint,
                fingerprint_updated=True,
            )

    async def _find_matching_subtitles(self, media: MediaItem) -> List[SubtitleFile]:
        # Other media sharing the directory must not affect this one
        all_subtitles = await self.inventory.get_all_subtitles(media.path)
        return [s for s in all_subtitles if s.base_name == media.file_name]

    async def _get_stored_fingerprint(self, media: MediaItem) -> Optional[str]:
        # Read under the lock; the caller's copy may predate a concurrent run
        stored = await self.store.get_media(media.media_type, media.id)
        if stored is None:
            return media.fingerprint
        return stored.fingerprint

    async def _resolve_and_dispatch(
        self, media: MediaItem, subtitles: List[SubtitleFile]
    ) -> Tuple[ProcessOutcome, int]:
        languages = await self.settings_resolver.resolve()
        plan = resolve_gap(
            subtitles,
            languages.source_languages,
            languages.target_languages,
            media_name=media.file_name,
        )

        if isinstance(plan, SkipReason):
            return ProcessOutcome.from_skip_reason(plan), 0

        if not plan.missing_targets:
            logger.info(
                f"All target languages already present for {media.file_name}"
            )
            return ProcessOutcome.UP_TO_DATE, 0

        requests_created = await self.dispatcher.dispatch(media, plan)
        return ProcessOutcome.REQUESTS_CREATED, requests_created


# Global processor instance
media_processor = MediaSubtitleProcessor()
