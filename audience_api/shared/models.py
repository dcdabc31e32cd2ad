import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from audience_api.database import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

class UUIDMixin:
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

class AuditMixin(UUIDMixin, TimestampMixin):
    """Combines UUID and Timestamps for standard entities."""
    pass


def scope_filter(model, scope):
    """Exact match on the (project, segment, pain) key of a scoped table."""
    return (
        model.project_id == scope.project_id,
        model.segment_id.is_(None) if scope.segment_id is None else model.segment_id == scope.segment_id,
        model.pain_id.is_(None) if scope.pain_id is None else model.pain_id == scope.pain_id,
    )


def prefix_filter(model, scope):
    """Every row at or below ``scope``: keys unset on the scope are not constrained."""
    clauses = [model.project_id == scope.project_id]
    if scope.segment_id is not None:
        clauses.append(model.segment_id == scope.segment_id)
    if scope.pain_id is not None:
        clauses.append(model.pain_id == scope.pain_id)
    return tuple(clauses)
