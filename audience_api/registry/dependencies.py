from fastapi import HTTPException

from audience_api.registry.stages import Stage, stage_of
from audience_api.shared.exceptions import NotFoundError


async def get_stage(stage_id: str) -> Stage:
    try:
        return stage_of(stage_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
