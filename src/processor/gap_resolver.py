"""Decide the translation source and the missing target languages."""

import logging
from typing import AbstractSet, Iterable, Union

from common.schemas import GapPlan, SkipReason, SubtitleFile
from common.utils import LanguageUtils

logger = logging.getLogger(__name__)


def resolve_gap(
    existing: Iterable[SubtitleFile],
    source_languages: AbstractSet[str],
    target_languages: AbstractSet[str],
    media_name: str = "",
) -> Union[GapPlan, SkipReason]:
    """
    Work out which translations a media item is missing.

    When several existing languages are acceptable sources, the
    lexicographically smallest code wins so repeated runs pick the same one.
    Among files of that language an untagged subtitle is preferred over
    forced or SDH variants, then the smallest path.

    Args:
        existing: Subtitle files present for the media item
        source_languages: Codes acceptable as translation source
        target_languages: Codes that should exist for every media item
        media_name: Media file name, used in log lines only

    Returns:
        A GapPlan (possibly with no missing targets), or the SkipReason that
        stopped resolution
    """
    subtitles = list(existing)
    existing_langs = LanguageUtils.normalize_codes(s.language for s in subtitles)
    sources = LanguageUtils.normalize_codes(source_languages)
    targets = LanguageUtils.normalize_codes(target_languages)

    if not sources or not targets:
        logger.warning(
            f"Source or target languages are empty. "
            f"Source languages: {len(sources)}, Target languages: {len(targets)}"
        )
        return SkipReason.NO_LANGUAGES_CONFIGURED

    candidates = sorted(existing_langs & sources)
    if not candidates:
        logger.warning(
            f"No valid source language or target languages found for media {media_name}. "
            f"Existing languages: {LanguageUtils.format_codes(existing_langs)}, "
            f"Source languages: {LanguageUtils.format_codes(sources)}, "
            f"Target languages: {LanguageUtils.format_codes(targets)}"
        )
        return SkipReason.NO_VALID_SOURCE_OR_TARGETS
    chosen_source = candidates[0]

    source_subtitle = min(
        (
            s
            for s in subtitles
            if LanguageUtils.normalize_code(s.language) == chosen_source
        ),
        # Forced and SDH variants cover only part of the dialogue
        key=lambda s: (bool(s.tags), s.path),
        default=None,
    )
    if source_subtitle is None:
        logger.warning(f"No source subtitle file found for language: {chosen_source}")
        return SkipReason.SOURCE_SUBTITLE_MISSING

    return GapPlan(
        source_subtitle=source_subtitle,
        source_language=chosen_source,
        missing_targets=targets - existing_langs,
    )
