from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from audience_api.shared.exceptions import ValidationError


class ScopeShape(str, Enum):
    PROJECT = "project"
    SEGMENT = "segment"
    PAIN = "pain"

    @property
    def rank(self) -> int:
        return _SHAPE_RANK[self]


_SHAPE_RANK = {ScopeShape.PROJECT: 0, ScopeShape.SEGMENT: 1, ScopeShape.PAIN: 2}


class Scope(BaseModel):
    """The (project, segment?, pain?) key narrowing a stage's data."""

    project_id: UUID
    segment_id: Optional[UUID] = None
    pain_id: Optional[UUID] = None

    model_config = ConfigDict(frozen=True)

    @property
    def shape(self) -> ScopeShape:
        if self.pain_id is not None:
            return ScopeShape.PAIN
        if self.segment_id is not None:
            return ScopeShape.SEGMENT
        return ScopeShape.PROJECT

    def narrow_to(self, shape: ScopeShape) -> "Scope":
        """Drop the keys finer than ``shape``.

        Used by the gate: a pain-scoped stage checks its segment-scoped
        upstream against the same project + segment.
        """
        if shape.rank > self.shape.rank:
            raise ValidationError(
                f"Cannot narrow a {self.shape.value} scope to {shape.value}",
                {"scope": self.describe()},
            )
        if shape == ScopeShape.PROJECT:
            return Scope(project_id=self.project_id)
        if shape == ScopeShape.SEGMENT:
            return Scope(project_id=self.project_id, segment_id=self.segment_id)
        return self

    def require_shape(self, shape: ScopeShape) -> None:
        if self.pain_id is not None and self.segment_id is None:
            raise ValidationError("A pain scope requires a segment_id", {"scope": self.describe()})
        if self.shape != shape:
            raise ValidationError(
                f"Expected a {shape.value} scope, got {self.shape.value}",
                {"scope": self.describe()},
            )

    def describe(self) -> dict:
        data = {"project_id": str(self.project_id)}
        if self.segment_id is not None:
            data["segment_id"] = str(self.segment_id)
        if self.pain_id is not None:
            data["pain_id"] = str(self.pain_id)
        return data
