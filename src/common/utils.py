"""Utility functions for common operations across the application."""

import logging
import re
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Iterable, NamedTuple, Optional, Union
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)

# <base>.<language>[.<tag>...].<extension>, e.g. "Movie.en.srt", "Show.S01E02.pt-BR.forced.ass"
SUBTITLE_NAME_PATTERN = re.compile(
    r"^(?P<base>.+?)"
    r"\.(?P<language>[A-Za-z]{2,3}(?:[-_][A-Za-z0-9]{2,4})?)"
    r"(?P<tags>(?:\.(?:hi|sdh|cc|forced))*)"
    r"\.(?P<extension>[A-Za-z0-9]+)$",
    re.IGNORECASE,
)


class SubtitleName(NamedTuple):
    """Parts of a subtitle file name."""

    base_name: str
    language: str
    tags: tuple
    extension: str


class SubtitleNameUtils:
    """Subtitle file name parsing helpers."""

    @staticmethod
    def parse(file_name: str) -> Optional[SubtitleName]:
        """
        Split a subtitle file name into base name, language, tags and extension.

        Args:
            file_name: File name, with or without leading directories

        Returns:
            SubtitleName, or None when the name carries no language token

        Example:
            >>> SubtitleNameUtils.parse("Movie.en.hi.srt")
            SubtitleName(base_name='Movie', language='en', tags=('hi',), extension='srt')
        """
        match = SUBTITLE_NAME_PATTERN.match(PurePath(file_name).name)
        if not match:
            return None

        tags = tuple(tag.lower() for tag in match.group("tags").split(".") if tag)
        return SubtitleName(
            base_name=match.group("base"),
            language=match.group("language"),
            tags=tags,
            extension=match.group("extension").lower(),
        )

    @staticmethod
    def base_name(file_name: str) -> str:
        """Return the media base name a subtitle file belongs to."""
        parsed = SubtitleNameUtils.parse(file_name)
        if parsed:
            return parsed.base_name
        return PurePath(file_name).stem


class MathUtils:
    """Mathematical utility functions."""

    @staticmethod
    def clamp_percentage(value: Union[int, float]) -> int:
        """
        Clamp a progress value into the 0-100 range.

        Args:
            value: Raw progress value reported by a worker

        Returns:
            Integer percentage between 0 and 100

        Example:
            >>> MathUtils.clamp_percentage(140)
            100
        """
        return max(0, min(100, int(value)))


class StringUtils:
    """String manipulation utility functions."""

    @staticmethod
    def generate_media_key(media_type: str, media_id: int) -> str:
        """
        Generate a Redis key for a media record.

        Args:
            media_type: Media type value ('movie' or 'episode')
            media_id: Identifier of the media item

        Returns:
            Formatted Redis key string

        Example:
            >>> StringUtils.generate_media_key("movie", 42)
            'media:movie:42'
        """
        return f"media:{media_type}:{media_id}"

    @staticmethod
    def generate_request_key(request_id: str) -> str:
        """
        Generate a Redis key for a translation request.

        Example:
            >>> StringUtils.generate_request_key("123-456")
            'translation_request:123-456'
        """
        return f"translation_request:{request_id}"

    @staticmethod
    def generate_setting_key(setting_name: str) -> str:
        """Generate a Redis key for a stored setting."""
        return f"settings:{setting_name}"

    @staticmethod
    def safe_to_lowercase(text: Optional[str]) -> str:
        """
        Safely convert text to lowercase.

        Args:
            text: Input text

        Returns:
            Lowercase text, or empty string if input is None
        """
        return text.lower() if text else ""


class LanguageUtils:
    """Language code helpers."""

    @staticmethod
    def normalize_code(code: Optional[str]) -> str:
        """
        Bring a language code into its canonical form.

        Codes are compared case-insensitively everywhere, so the canonical
        form is the stripped, lower-cased code.

        Example:
            >>> LanguageUtils.normalize_code(" EN ")
            'en'
        """
        return StringUtils.safe_to_lowercase(code).strip()

    @staticmethod
    def normalize_codes(codes: Iterable[str]) -> frozenset:
        """Normalize a collection of codes, dropping blanks and duplicates."""
        normalized = (LanguageUtils.normalize_code(code) for code in codes)
        return frozenset(code for code in normalized if code)

    @staticmethod
    def format_codes(codes: Iterable[str]) -> str:
        """Render codes as a sorted, comma separated string for log lines."""
        return ", ".join(sorted(codes)) or "none"


class JobIdUtils:
    """Request ID generation and validation utility functions."""

    @staticmethod
    def generate_job_id() -> UUID:
        """Generate a new UUID4 identifier."""
        return uuid4()

    @staticmethod
    def is_valid_job_id(job_id: Union[str, UUID]) -> bool:
        """
        Check whether a value is a valid UUID.

        Args:
            job_id: String or UUID to validate

        Returns:
            True if the value parses as a UUID, False otherwise
        """
        if isinstance(job_id, UUID):
            return True
        try:
            UUID(str(job_id))
            return True
        except (ValueError, AttributeError, TypeError):
            return False


class DateTimeUtils:
    """Date and time utility functions."""

    @staticmethod
    def get_current_utc_datetime() -> datetime:
        """
        Get the current UTC datetime.

        Returns:
            Current datetime in UTC timezone
        """
        return datetime.now(timezone.utc)

    @staticmethod
    def get_date_string_for_log_file() -> str:
        """
        Get current date formatted for log file naming.

        Returns:
            Date string in format YYYYMMDD
        """
        return datetime.now().strftime("%Y%m%d")
