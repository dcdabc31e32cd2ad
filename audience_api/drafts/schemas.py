from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from audience_api.registry import display_label


class DraftCreate(BaseModel):
    payload: Dict[str, Any]


class DraftPatch(BaseModel):
    fields: Dict[str, Any] = Field(..., description="Top-level payload keys to overwrite")
    expected_version: Optional[int] = Field(
        None, description="Reject the edit with 409 if the row's version differs"
    )


class DraftRowResponse(BaseModel):
    id: UUID
    stage: str
    project_id: UUID
    segment_id: Optional[UUID] = None
    pain_id: Optional[UUID] = None
    ordinal: int
    version: int
    label: str
    payload: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row) -> "DraftRowResponse":
        return cls(
            id=row.id,
            stage=row.stage,
            project_id=row.project_id,
            segment_id=row.segment_id,
            pain_id=row.pain_id,
            ordinal=row.ordinal,
            version=row.version,
            label=display_label(row.stage, row.payload or {}),
            payload=row.payload or {},
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class VersionDeleteResponse(BaseModel):
    version: int
    deleted: int
