from typing import List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    brand_description: Optional[str] = None
    product_description: Optional[str] = None
    native_language: str = Field("en", description="Language the content is generated in")


class SegmentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    order_index: Optional[int] = None


class SegmentResponse(BaseModel):
    id: UUID
    project_id: UUID
    name: str
    description: Optional[str]
    order_index: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectResponse(BaseModel):
    id: UUID
    name: str
    brand_description: Optional[str]
    product_description: Optional[str]
    native_language: str
    current_stage: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
