import json
import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

import httpx
from langchain_core.messages import HumanMessage, SystemMessage

from audience_api.config import settings
from audience_api.llm.factory import get_translation_llm
from audience_api.shared.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "en": "English",
    "ru": "Russian",
    "uk": "Ukrainian",
    "de": "German",
    "es": "Spanish",
    "fr": "French",
}

# DeepL target codes; English needs a regional variant
DEEPL_LANGUAGE_CODES = {
    "en": "EN-US",
    "ru": "RU",
    "uk": "UK",
    "de": "DE",
    "es": "ES",
    "fr": "FR",
}


class TranslationProvider(ABC):
    name: str = "provider"

    @abstractmethod
    async def translate_text(self, strings: List[str], language: str) -> List[str]:
        """Translate ``strings`` into ``language``, one output per input, same order."""


class DeepLTranslationProvider(TranslationProvider):
    name = "deepl"

    def __init__(self, api_key: str, api_url: str = settings.DEEPL_API_URL, timeout: float = 30.0):
        self._api_key = api_key
        self._api_url = api_url
        self._timeout = timeout

    async def translate_text(self, strings: List[str], language: str) -> List[str]:
        target = DEEPL_LANGUAGE_CODES.get(language)
        if target is None:
            raise ExternalServiceError(f"DeepL does not support language {language!r}")
        if not strings:
            return []

        payload = {"text": list(strings), "target_lang": target}
        headers = {"Authorization": f"DeepL-Auth-Key {self._api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._api_url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            raise ExternalServiceError(f"Network error while calling DeepL: {exc}") from exc

        if response.status_code == 456:
            raise ExternalServiceError("DeepL quota exceeded")
        if response.status_code >= 400:
            raise ExternalServiceError(f"DeepL call failed ({response.status_code}): {response.text}")

        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalServiceError("DeepL returned invalid JSON") from exc

        translations = body.get("translations") if isinstance(body, dict) else None
        if not isinstance(translations, list):
            raise ExternalServiceError("DeepL response is missing translations")
        return [str(item.get("text", "")) for item in translations]


class LLMTranslationProvider(TranslationProvider):
    name = "llm"

    async def translate_text(self, strings: List[str], language: str) -> List[str]:
        if not strings:
            return []
        language_name = LANGUAGE_NAMES.get(language, language)
        llm = get_translation_llm()
        response = await llm.ainvoke([
            SystemMessage(content=(
                f"You are a professional translator. Translate every string of the JSON array "
                f"you receive into {language_name}. Keep marketing tone, names and formatting. "
                'Return a JSON object {"translations": [...]} with exactly one translated string '
                "per input string, in the same order."
            )),
            HumanMessage(content=json.dumps(strings, ensure_ascii=False)),
        ])
        try:
            parsed = json.loads(str(response.content))
        except json.JSONDecodeError as exc:
            raise ExternalServiceError("Translation model returned invalid JSON") from exc

        if isinstance(parsed, dict):
            parsed = parsed.get("translations")
        if not isinstance(parsed, list):
            raise ExternalServiceError("Translation model did not return a list")
        return [str(item) for item in parsed]


class FallbackTranslationProvider(TranslationProvider):
    """Tries each provider in order and returns the first complete answer."""

    name = "fallback"

    def __init__(self, providers: Sequence[TranslationProvider]):
        self.providers = list(providers)

    async def translate_text(self, strings: List[str], language: str) -> List[str]:
        errors: List[str] = []
        for provider in self.providers:
            try:
                translated = await provider.translate_text(strings, language)
            except Exception as e:
                message = getattr(e, "message", None) or str(e)
                logger.warning("Translation provider %s failed: %s", provider.name, message)
                errors.append(f"{provider.name}: {message}")
                continue
            if len(translated) != len(strings):
                logger.warning(
                    "Translation provider %s returned %d strings for %d inputs",
                    provider.name, len(translated), len(strings),
                )
                errors.append(f"{provider.name}: malformed response")
                continue
            return translated
        raise ExternalServiceError("All translation providers failed", {"errors": errors})


def build_default_provider() -> TranslationProvider:
    providers: List[TranslationProvider] = []
    if settings.DEEPL_API_KEY:
        providers.append(DeepLTranslationProvider(
            settings.DEEPL_API_KEY,
            settings.DEEPL_API_URL,
            timeout=settings.TRANSLATION_TIMEOUT_SECONDS,
        ))
    providers.append(LLMTranslationProvider())
    return FallbackTranslationProvider(providers)
