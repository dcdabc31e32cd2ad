from sqlalchemy import Column, String
from audience_api.database import Base
from audience_api.shared.models import AuditMixin, JSONType


class TranslationCacheEntry(Base, AuditMixin):
    """Translated content keyed by sha256(fingerprint|language|scope). Never evicted."""
    __tablename__ = "translation_cache_entries"

    cache_key = Column(String(64), nullable=False, unique=True, index=True)
    fingerprint = Column(String(64), nullable=False)
    language = Column(String(8), nullable=False)
    scope_id = Column(String, nullable=False)
    content = Column(JSONType, nullable=False)
