from __future__ import annotations

from typing import TYPE_CHECKING

from audience_api.config import settings

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel

# Valid provider identifiers
VALID_PROVIDERS = ("ollama", "openai", "anthropic")

# Module-level cache, keyed by role
_llm_cache: dict[str, BaseChatModel] = {}


def clear_llm_cache() -> None:
    """Drop all cached LLM instances so they're recreated on next call."""
    _llm_cache.clear()


# ---------------------------------------------------------------------------
# Internal constructor (lazy imports to avoid hard dep on unused packages)
# ---------------------------------------------------------------------------

def _create_chat_model(
    provider: str,
    *,
    ollama_model: str,
    openai_model: str,
    anthropic_model: str,
    temperature: float,
    json_mode: bool = False,
) -> BaseChatModel:
    if provider == "ollama":
        from langchain_ollama import ChatOllama

        kwargs: dict = dict(
            base_url=settings.OLLAMA_BASE_URL,
            model=ollama_model,
            temperature=temperature,
        )
        if json_mode:
            kwargs["format"] = "json"
        return ChatOllama(**kwargs)

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY is required when using the openai provider")
        kwargs = dict(
            model=openai_model,
            temperature=temperature,
            api_key=settings.OPENAI_API_KEY,
        )
        if json_mode:
            kwargs["model_kwargs"] = {"response_format": {"type": "json_object"}}
        return ChatOpenAI(**kwargs)

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        if not settings.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY is required when using the anthropic provider")
        return ChatAnthropic(
            model=anthropic_model,
            temperature=temperature,
            api_key=settings.ANTHROPIC_API_KEY,
        )

    raise ValueError(f"Unknown provider: {provider!r}. Valid: {VALID_PROVIDERS}")


# ---------------------------------------------------------------------------
# Public factory functions
# ---------------------------------------------------------------------------

def get_primary_llm() -> BaseChatModel:
    """Primary Engine. Used for: stage draft generation."""
    key = "primary"
    if key not in _llm_cache:
        _llm_cache[key] = _create_chat_model(
            settings.LLM_PROVIDER_PRIMARY,
            ollama_model=settings.OLLAMA_MODEL_PRIMARY,
            openai_model=settings.OPENAI_MODEL_PRIMARY,
            anthropic_model=settings.ANTHROPIC_MODEL_PRIMARY,
            temperature=0.7,
            json_mode=True,
        )
    return _llm_cache[key]


def get_secondary_llm() -> BaseChatModel:
    """Secondary Engine. Used for: single field regeneration."""
    key = "secondary"
    if key not in _llm_cache:
        _llm_cache[key] = _create_chat_model(
            settings.LLM_PROVIDER_SECONDARY,
            ollama_model=settings.OLLAMA_MODEL_SECONDARY,
            openai_model=settings.OPENAI_MODEL_SECONDARY,
            anthropic_model=settings.ANTHROPIC_MODEL_SECONDARY,
            temperature=0.8,
        )
    return _llm_cache[key]


def get_translation_llm() -> BaseChatModel:
    """Translation Engine. Used for: translating content when DeepL is unavailable."""
    key = "translation"
    if key not in _llm_cache:
        _llm_cache[key] = _create_chat_model(
            settings.LLM_PROVIDER_TRANSLATION,
            ollama_model=settings.OLLAMA_MODEL_TRANSLATION,
            openai_model=settings.OPENAI_MODEL_TRANSLATION,
            anthropic_model=settings.ANTHROPIC_MODEL_TRANSLATION,
            temperature=0.0,
            json_mode=True,
        )
    return _llm_cache[key]
