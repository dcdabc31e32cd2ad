from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class GateDecision(BaseModel):
    stage: str
    allowed: bool
    blocking_stage: Optional[str] = None
    message: Optional[str] = None


class SegmentProgress(BaseModel):
    segment_id: UUID
    segment_name: str
    completed_stages: List[str]
    current_stage: Optional[str] = None


class ScopeResponse(BaseModel):
    project_id: UUID
    segment_id: Optional[UUID] = None
    pain_id: Optional[UUID] = None
