import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.translation.models import TranslationCacheEntry

logger = logging.getLogger(__name__)


class TranslationStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def put(self, key: str, content: Any, *, fingerprint: str, language: str, scope_id: str) -> None:
        ...


class MemoryTranslationStore(TranslationStore):
    """Process-local cache. Lost on restart."""

    def __init__(self):
        self._entries: Dict[str, Any] = {}

    async def get(self, key: str) -> Optional[Any]:
        return self._entries.get(key)

    async def put(self, key: str, content: Any, *, fingerprint: str, language: str, scope_id: str) -> None:
        self._entries[key] = content

    def __len__(self) -> int:
        return len(self._entries)


class DatabaseTranslationStore(TranslationStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, key: str) -> Optional[Any]:
        try:
            result = await self.db.execute(
                select(TranslationCacheEntry.content).where(TranslationCacheEntry.cache_key == key)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.warning("Could not read translation %s, treating as a miss", key, exc_info=True)
            return None

    async def put(self, key: str, content: Any, *, fingerprint: str, language: str, scope_id: str) -> None:
        try:
            result = await self.db.execute(
                select(TranslationCacheEntry).where(TranslationCacheEntry.cache_key == key)
            )
            entry = result.scalar_one_or_none()
            if entry is None:
                self.db.add(TranslationCacheEntry(
                    cache_key=key,
                    fingerprint=fingerprint,
                    language=language,
                    scope_id=scope_id,
                    content=content,
                ))
            else:
                # Concurrent miss on the same key
                entry.content = content
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.warning("Could not store translation %s, continuing uncached", key, exc_info=True)
