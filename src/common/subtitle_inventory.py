"""Filesystem listing of the subtitle files stored next to a media file."""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from common.config import settings
from common.schemas import SubtitleFile
from common.utils import SubtitleNameUtils

logger = logging.getLogger(__name__)


class SubtitleInventory:
    """Lists subtitle files in a media directory."""

    def __init__(self, extensions: Optional[Iterable[str]] = None):
        self.extensions = frozenset(
            ext.lower() for ext in (extensions or settings.subtitle_extensions)
        )

    async def get_all_subtitles(self, path: str) -> List[SubtitleFile]:
        """
        Return every subtitle file found directly in ``path``.

        Directory listing runs in a worker thread so the event loop is not
        blocked on slow network shares.

        Raises:
            OSError: If the path does not exist or cannot be read
        """
        return await asyncio.to_thread(self._scan_directory, Path(path))

    def _scan_directory(self, directory: Path) -> List[SubtitleFile]:
        subtitles = []
        for entry in sorted(directory.iterdir()):
            if not entry.is_file() or entry.suffix.lower() not in self.extensions:
                continue

            parsed = SubtitleNameUtils.parse(entry.name)
            if parsed is None:
                logger.debug(f"Ignoring subtitle without language tag: {entry}")
                continue

            subtitles.append(
                SubtitleFile(
                    path=str(entry),
                    file_name=entry.name,
                    language=parsed.language,
                    format=parsed.extension,
                )
            )

        logger.debug(f"Found {len(subtitles)} subtitle files in {directory}")
        return subtitles


# Global inventory instance
subtitle_inventory = SubtitleInventory()
