from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from audience_api.registry.stages import Stage


class StageResponse(BaseModel):
    id: str
    title: str
    description: str
    scope_shape: str
    upstream: List[str]
    insert_mode: str
    ranking_flag: Optional[str] = None
    payload_schema: Dict[str, Any]

    @classmethod
    def from_stage(cls, stage: Stage) -> "StageResponse":
        return cls(
            id=stage.id.value,
            title=stage.title,
            description=stage.description,
            scope_shape=stage.scope_shape.value,
            upstream=[s.value for s in stage.upstream],
            insert_mode=stage.insert_mode.value,
            ranking_flag=stage.ranking_flag,
            payload_schema=stage.payload_model.model_json_schema(),
        )
