import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from audience_api.database import get_db
from audience_api.generation.base import Generator
from audience_api.generation.dependencies import get_generator
from audience_api.generation.schemas import (
    FieldRegenerateRequest,
    FieldRegenerationResult,
    GenerateRequest,
    GenerationResult,
)
from audience_api.generation.service import FieldRegenerationService, GenerationService
from audience_api.projects.dependencies import get_scope, require_project
from audience_api.projects.models import Project
from audience_api.registry import Scope, Stage
from audience_api.registry.dependencies import get_stage
from audience_api.shared.exceptions import PipelineError
from audience_api.shared.http import http_error
from audience_api.shared.schemas import BatchOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["generation"])


@router.post("/{project_id}/stages/{stage_id}/generate", response_model=GenerationResult)
async def generate_stage(
    request: Optional[GenerateRequest] = None,
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
    generator: Generator = Depends(get_generator),
):
    service = GenerationService(db, generator)
    try:
        result = await service.generate(stage, scope, request.instructions if request else "")
    except PipelineError as e:
        raise http_error(e)
    except Exception as e:
        logger.exception("Unexpected generation failure")
        raise HTTPException(status_code=500, detail=str(e))

    if result.blocked:
        raise HTTPException(
            status_code=409,
            detail={"message": result.message, "blocking_stage": result.blocking_stage},
        )
    return result


@router.post("/{project_id}/stages/{stage_id}/generate-all", response_model=List[BatchOutcome])
async def generate_all(
    request: Optional[GenerateRequest] = None,
    project: Project = Depends(require_project),
    stage: Stage = Depends(get_stage),
    db: AsyncSession = Depends(get_db),
    generator: Generator = Depends(get_generator),
):
    service = GenerationService(db, generator)
    return await service.generate_all(stage, project.id, request.instructions if request else "")


@router.post("/{project_id}/stages/{stage_id}/generate-all/stream")
async def generate_all_stream(
    request: Optional[GenerateRequest] = None,
    project: Project = Depends(require_project),
    stage: Stage = Depends(get_stage),
    db: AsyncSession = Depends(get_db),
    generator: Generator = Depends(get_generator),
):
    service = GenerationService(db, generator)
    return EventSourceResponse(
        service.stream_all(stage, project.id, request.instructions if request else "")
    )


@router.post(
    "/{project_id}/stages/{stage_id}/drafts/{row_id}/fields/{field_name}/regenerate",
    response_model=FieldRegenerationResult,
)
async def regenerate_field(
    row_id: UUID,
    field_name: str,
    request: Optional[FieldRegenerateRequest] = None,
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
    generator: Generator = Depends(get_generator),
):
    request = request or FieldRegenerateRequest()
    service = FieldRegenerationService(db, generator)
    try:
        return await service.regenerate_field(
            stage,
            row_id,
            field_name,
            current_value=request.current_value,
            context=request.context,
            scope=scope,
        )
    except PipelineError as e:
        raise http_error(e)
