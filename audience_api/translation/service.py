import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

from audience_api.config import settings
from audience_api.shared.exceptions import ExternalServiceError, ValidationError
from audience_api.translation.content import (
    cache_key,
    extract_strings,
    fingerprint,
    merge_translated,
    pick,
    rebuild,
)
from audience_api.translation.providers import TranslationProvider
from audience_api.translation.schemas import TranslationResult
from audience_api.translation.stores import TranslationStore

logger = logging.getLogger(__name__)


class TranslationService:
    """
    Content-addressed translation cache in front of a translation provider.

    The cache key covers the content fingerprint, the language and the scope,
    so an entry is valid forever: edited content simply hashes to a new key.
    """

    def __init__(
        self,
        store: TranslationStore,
        provider: TranslationProvider,
        native_language: str = settings.NATIVE_LANGUAGE,
        timeout: float = settings.TRANSLATION_TIMEOUT_SECONDS,
    ):
        self.store = store
        self.provider = provider
        self.native_language = native_language
        self.timeout = timeout

    async def translate(
        self,
        content: Any,
        target_language: str,
        scope_id: str,
        native_language: Optional[str] = None,
    ) -> Optional[TranslationResult]:
        if target_language == (native_language or self.native_language):
            return None
        if target_language not in settings.SUPPORTED_LANGUAGES:
            raise ValidationError(f"Unsupported language: {target_language}")

        content_fingerprint = fingerprint(content)
        key = cache_key(content_fingerprint, target_language, str(scope_id))

        cached = await self.store.get(key)
        if cached is not None:
            return TranslationResult(content=cached, language=target_language, cached=True)

        strings = extract_strings(content)
        if strings:
            try:
                translated = await asyncio.wait_for(
                    self.provider.translate_text([text for _, text in strings], target_language),
                    timeout=self.timeout,
                )
                if len(translated) != len(strings):
                    raise ExternalServiceError(
                        f"Provider returned {len(translated)} strings for {len(strings)} inputs"
                    )
            except asyncio.TimeoutError:
                return self._unavailable(content, target_language, f"Translation timed out after {self.timeout}s")
            except Exception as e:
                return self._unavailable(content, target_language, getattr(e, "message", None) or str(e))
            result = rebuild(content, strings, translated)
        else:
            result = content

        await self.store.put(
            key,
            result,
            fingerprint=content_fingerprint,
            language=target_language,
            scope_id=str(scope_id),
        )
        return TranslationResult(content=result, language=target_language)

    def _unavailable(self, content: Any, language: str, error: str) -> TranslationResult:
        logger.warning("Translation to %s unavailable, showing original: %s", language, error)
        return TranslationResult(
            content=content,
            language=language,
            translated=False,
            unavailable=True,
            error=error,
        )

    async def translate_subset(
        self,
        entity: Dict[str, Any],
        keys: Iterable[str],
        target_language: str,
        scope_id: str,
        native_language: Optional[str] = None,
    ) -> Optional[TranslationResult]:
        """Translate one tab's worth of keys and merge them back onto the entity."""
        subset = pick(entity, keys)
        result = await self.translate(subset, target_language, scope_id, native_language)
        if result is None:
            return None
        merged = merge_translated(entity, result.content) if result.translated else dict(entity)
        return result.model_copy(update={"content": merged})
