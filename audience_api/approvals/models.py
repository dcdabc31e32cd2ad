from datetime import datetime
from sqlalchemy import Column, String, ForeignKey, Integer, Uuid, DateTime, Index
from audience_api.database import Base
from audience_api.shared.models import AuditMixin, JSONType


class ApprovedRecord(Base, AuditMixin):
    """Frozen copy of an approved draft. Downstream stages read only these."""
    __tablename__ = "approved_records"
    __table_args__ = (
        Index("ix_approved_records_store_scope", "store", "project_id", "segment_id", "pain_id"),
    )

    store = Column(String, nullable=False)  # stage's approved store id, e.g. "pains_initial"
    stage = Column(String, nullable=False)
    project_id = Column(ForeignKey("projects.id"), nullable=False)
    segment_id = Column(Uuid(as_uuid=True), nullable=True)
    pain_id = Column(Uuid(as_uuid=True), nullable=True)

    ordinal = Column(Integer, nullable=False, default=0)
    payload = Column(JSONType, nullable=False, default=dict)

    source_draft_id = Column(Uuid(as_uuid=True), nullable=True)
    source_version = Column(Integer, nullable=True)
    approved_at = Column(DateTime, default=datetime.utcnow, nullable=False)
