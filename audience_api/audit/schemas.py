from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from audience_api.audit.models import AuditEventType


class AuditEventResponse(BaseModel):
    id: UUID
    project_id: UUID
    event_type: AuditEventType
    stage: Optional[str] = None
    segment_id: Optional[UUID] = None
    pain_id: Optional[UUID] = None
    detail: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
