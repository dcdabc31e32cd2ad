from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.database import get_db
from audience_api.gate.schemas import GateDecision, ScopeResponse, SegmentProgress
from audience_api.gate.service import DependencyGate
from audience_api.projects.dependencies import get_scope, require_project
from audience_api.projects.models import Project
from audience_api.registry import Scope, Stage
from audience_api.registry.dependencies import get_stage
from audience_api.shared.exceptions import PipelineError
from audience_api.shared.http import http_error

router = APIRouter(prefix="/projects", tags=["gate"])


@router.get("/{project_id}/stages/{stage_id}/gate", response_model=GateDecision)
async def check_gate(
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await DependencyGate(db).can_enter(stage, scope)
    except PipelineError as e:
        raise http_error(e)


@router.get("/{project_id}/stages/{stage_id}/scopes", response_model=List[ScopeResponse])
async def list_scopes(
    project: Project = Depends(require_project),
    stage: Stage = Depends(get_stage),
    db: AsyncSession = Depends(get_db),
):
    found = await DependencyGate(db).scopes_for(stage, project.id)
    return [ScopeResponse(**s.model_dump()) for s in found]


@router.get("/{project_id}/progress", response_model=List[SegmentProgress])
async def project_progress(
    project_id: UUID,
    project: Project = Depends(require_project),
    db: AsyncSession = Depends(get_db),
):
    return await DependencyGate(db).progress(project_id)
