from typing import List

from fastapi import APIRouter, HTTPException

from audience_api.registry.schemas import StageResponse
from audience_api.registry.stages import ordered_stages, stage_of
from audience_api.shared.exceptions import NotFoundError

router = APIRouter(prefix="/stages", tags=["stages"])


@router.get("", response_model=List[StageResponse])
async def list_stages():
    return [StageResponse.from_stage(stage) for stage in ordered_stages()]


@router.get("/{stage_id}", response_model=StageResponse)
async def get_stage(stage_id: str):
    try:
        return StageResponse.from_stage(stage_of(stage_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
