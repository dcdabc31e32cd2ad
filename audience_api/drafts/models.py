from sqlalchemy import Column, String, ForeignKey, Integer, Uuid, Index
from audience_api.database import Base
from audience_api.shared.models import AuditMixin, JSONType


class DraftRow(Base, AuditMixin):
    """Editable generated content of one stage, one row per item."""
    __tablename__ = "draft_rows"
    __table_args__ = (
        Index("ix_draft_rows_store_scope", "store", "project_id", "segment_id", "pain_id"),
    )

    store = Column(String, nullable=False)  # stage's draft store id, e.g. "pains_drafts"
    stage = Column(String, nullable=False)
    project_id = Column(ForeignKey("projects.id"), nullable=False)
    segment_id = Column(Uuid(as_uuid=True), nullable=True)
    pain_id = Column(Uuid(as_uuid=True), nullable=True)

    ordinal = Column(Integer, nullable=False, default=0)
    payload = Column(JSONType, nullable=False, default=dict)

    # Generation pass the row belongs to; edits never bump it
    version = Column(Integer, nullable=False, default=1)
