from enum import Enum
from sqlalchemy import Column, String, ForeignKey, Uuid
from sqlalchemy import Enum as SAEnum
from audience_api.database import Base
from audience_api.shared.models import AuditMixin, JSONType


class AuditEventType(str, Enum):
    DRAFTS_GENERATED = "DRAFTS_GENERATED"
    DRAFT_CREATED = "DRAFT_CREATED"
    DRAFT_EDITED = "DRAFT_EDITED"
    DRAFT_DELETED = "DRAFT_DELETED"
    DRAFT_VERSION_DELETED = "DRAFT_VERSION_DELETED"
    FIELD_REGENERATED = "FIELD_REGENERATED"
    STAGE_APPROVED = "STAGE_APPROVED"
    STAGE_REVOKED = "STAGE_REVOKED"


class AuditEvent(Base, AuditMixin):
    __tablename__ = "audit_events"

    project_id = Column(ForeignKey("projects.id"), nullable=False, index=True)
    event_type = Column(SAEnum(AuditEventType), nullable=False)
    stage = Column(String, nullable=True)
    segment_id = Column(Uuid(as_uuid=True), nullable=True)
    pain_id = Column(Uuid(as_uuid=True), nullable=True)
    detail = Column(JSONType, nullable=True)
