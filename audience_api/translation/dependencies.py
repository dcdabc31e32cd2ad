from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.config import settings
from audience_api.database import get_db
from audience_api.translation.providers import TranslationProvider, build_default_provider
from audience_api.translation.service import TranslationService
from audience_api.translation.stores import (
    DatabaseTranslationStore,
    MemoryTranslationStore,
    TranslationStore,
)

_provider: Optional[TranslationProvider] = None
_memory_store = MemoryTranslationStore()


def get_translation_provider() -> TranslationProvider:
    global _provider
    if _provider is None:
        _provider = build_default_provider()
    return _provider


def get_translation_store(db: AsyncSession = Depends(get_db)) -> TranslationStore:
    if settings.TRANSLATION_CACHE_BACKEND == "memory":
        return _memory_store
    return DatabaseTranslationStore(db)


def get_translation_service(
    store: TranslationStore = Depends(get_translation_store),
    provider: TranslationProvider = Depends(get_translation_provider),
) -> TranslationService:
    return TranslationService(store, provider)
