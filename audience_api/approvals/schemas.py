from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from audience_api.registry import display_label


class ApproveRequest(BaseModel):
    row_ids: List[UUID] = Field(..., description="Drafts of the scope to approve, replacing the current set")


class ApproveAllRequest(BaseModel):
    row_ids: Optional[List[UUID]] = Field(
        None,
        description="Drafts to approve across scopes. Omit to approve the latest pass of every scope.",
    )


class ApprovedRecordResponse(BaseModel):
    id: UUID
    stage: str
    project_id: UUID
    segment_id: Optional[UUID] = None
    pain_id: Optional[UUID] = None
    ordinal: int
    label: str
    payload: Dict[str, Any]
    source_draft_id: Optional[UUID] = None
    source_version: Optional[int] = None
    approved_at: datetime

    @classmethod
    def from_record(cls, record) -> "ApprovedRecordResponse":
        return cls(
            id=record.id,
            stage=record.stage,
            project_id=record.project_id,
            segment_id=record.segment_id,
            pain_id=record.pain_id,
            ordinal=record.ordinal,
            label=display_label(record.stage, record.payload or {}),
            payload=record.payload or {},
            source_draft_id=record.source_draft_id,
            source_version=record.source_version,
            approved_at=record.approved_at,
        )


class ApprovalResult(BaseModel):
    stage: str
    scope: Dict[str, str]
    records: List[ApprovedRecordResponse]
    replaced: int = Field(0, description="Approved records superseded by this approval")


class ApprovalStatus(BaseModel):
    stage: str
    scope: Dict[str, str]
    approved: bool


class RevokeResult(BaseModel):
    stage: str
    scope: Dict[str, str]
    revoked: Dict[str, int] = Field(default_factory=dict, description="Removed records per stage")
