"""Source and target language settings."""

import asyncio
import logging
from typing import FrozenSet, List, Optional, Sequence

from pydantic import TypeAdapter

from common.config import settings
from common.event_publisher import EventPublisher, event_publisher
from common.exceptions import UnknownSettingError
from common.redis_client import RedisClient, redis_client
from common.schemas import Language, LanguageSettings

logger = logging.getLogger(__name__)

SOURCE_LANGUAGES = "source_languages"
TARGET_LANGUAGES = "target_languages"
LANGUAGE_SETTING_KEYS = (SOURCE_LANGUAGES, TARGET_LANGUAGES)

_languages_adapter = TypeAdapter(List[Language])


class LanguageSettingsResolver:
    """
    Reads the configured language sets.

    Stored settings are JSON lists of ``{"name": ..., "code": ...}`` objects.
    When a key was never stored, the comma separated defaults from the
    environment are used instead.
    """

    def __init__(
        self,
        store: Optional[RedisClient] = None,
        publisher: Optional[EventPublisher] = None,
    ):
        self.store = store or redis_client
        self.publisher = publisher or event_publisher

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in LANGUAGE_SETTING_KEYS:
            raise UnknownSettingError(key)

    @staticmethod
    def _defaults(key: str) -> List[Language]:
        codes = (
            settings.translation_source_languages
            if key == SOURCE_LANGUAGES
            else settings.translation_target_languages
        )
        return [Language(code=code) for code in codes if code.strip()]

    async def get_languages(self, key: str) -> List[Language]:
        """
        Languages stored under a setting key.

        Raises:
            UnknownSettingError: If key is not a language setting
            ValueError: If the stored value is not a valid language list
        """
        self._check_key(key)
        raw = await self.store.get_setting(key)
        if raw is None:
            return self._defaults(key)
        return _languages_adapter.validate_json(raw)

    async def get_language_setting(self, key: str) -> FrozenSet[str]:
        """Set of normalized language codes for a setting key, possibly empty."""
        languages = await self.get_languages(key)
        return frozenset(language.code for language in languages)

    async def resolve(self) -> LanguageSettings:
        source, target = await asyncio.gather(
            self.get_language_setting(SOURCE_LANGUAGES),
            self.get_language_setting(TARGET_LANGUAGES),
        )
        return LanguageSettings(source_languages=source, target_languages=target)

    async def update_language_setting(
        self, key: str, languages: Sequence[Language]
    ) -> List[Language]:
        """
        Store a language list and notify observers.

        Duplicate codes are collapsed, keeping the first entry.
        """
        self._check_key(key)

        unique: List[Language] = []
        seen = set()
        for language in languages:
            if language.code not in seen:
                seen.add(language.code)
                unique.append(language)

        value = _languages_adapter.dump_json(unique).decode()
        await self.store.set_setting(key, value)
        await self.publisher.publish_setting_update(key, value)

        logger.info(f"Updated {key}: {', '.join(lang.code for lang in unique) or 'none'}")
        return unique


# Global resolver instance
language_settings = LanguageSettingsResolver()
