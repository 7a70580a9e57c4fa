"""Turn a gap plan into translation requests."""

import logging
from typing import Optional

from common.schemas import GapPlan, MediaItem, TranslationRequest
from translator.request_queue import TranslationRequestQueue, translation_queue

logger = logging.getLogger(__name__)


class TranslationDispatcher:
    """Submits one translation request per missing target language."""

    def __init__(self, request_queue: Optional[TranslationRequestQueue] = None):
        self.request_queue = request_queue or translation_queue

    async def dispatch(self, media: MediaItem, plan: GapPlan) -> int:
        """
        Submit the translation work described by ``plan``.

        Submission is fire-and-forget: the queue hands back a handle that is
        not awaited for completion.

        Returns:
            Number of requests submitted
        """
        source = plan.source_subtitle
        submitted = 0

        for target_language in sorted(plan.missing_targets):
            await self.request_queue.submit(
                TranslationRequest(
                    media_id=media.id,
                    media_type=media.media_type,
                    subtitle_path=source.path,
                    source_language=plan.source_language,
                    target_language=target_language,
                    subtitle_format=source.format,
                )
            )
            submitted += 1
            logger.info(
                f"Initiating translation from {plan.source_language} to "
                f"{target_language} for {source.path}"
            )

        return submitted
