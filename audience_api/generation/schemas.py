from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from audience_api.drafts.schemas import DraftRowResponse


class GenerateRequest(BaseModel):
    instructions: str = Field("", description="Extra guidance appended to the prompt")


class GenerationResult(BaseModel):
    stage: str
    scope: Dict[str, str]
    blocked: bool = False
    blocking_stage: Optional[str] = None
    message: Optional[str] = None
    version: Optional[int] = None
    drafts: List[DraftRowResponse] = []
    dropped: int = Field(0, description="Generated items rejected by the payload schema")


class FieldRegenerateRequest(BaseModel):
    current_value: Optional[Any] = Field(None, description="Defaults to the stored value")
    context: str = ""


class FieldRegenerationResult(BaseModel):
    stage: str
    row_id: UUID
    field_name: str
    value: Any
    draft: DraftRowResponse
