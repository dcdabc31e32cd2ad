import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.approvals.schemas import (
    ApprovalResult,
    ApprovalStatus,
    ApproveAllRequest,
    ApproveRequest,
    ApprovedRecordResponse,
    RevokeResult,
)
from audience_api.approvals.service import ApprovalEngine
from audience_api.database import get_db
from audience_api.projects.dependencies import get_scope, require_project
from audience_api.projects.models import Project
from audience_api.registry import Scope, Stage
from audience_api.registry.dependencies import get_stage
from audience_api.shared.exceptions import PipelineError
from audience_api.shared.http import http_error
from audience_api.shared.schemas import BatchOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["approvals"])


@router.post("/{project_id}/stages/{stage_id}/approve", response_model=ApprovalResult)
async def approve_stage(
    request: ApproveRequest,
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
):
    service = ApprovalEngine(db)
    try:
        return await service.approve(stage, scope, request.row_ids)
    except PipelineError as e:
        raise http_error(e)
    except Exception as e:
        logger.exception("Unexpected approval failure")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{project_id}/stages/{stage_id}/approve-all", response_model=List[BatchOutcome])
async def approve_all(
    request: Optional[ApproveAllRequest] = None,
    project: Project = Depends(require_project),
    stage: Stage = Depends(get_stage),
    db: AsyncSession = Depends(get_db),
):
    service = ApprovalEngine(db)
    selection = request.row_ids if request else None
    return await service.approve_all(stage, project.id, selection)


@router.get("/{project_id}/stages/{stage_id}/approved", response_model=List[ApprovedRecordResponse])
async def list_approved(
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
):
    records = await ApprovalEngine(db).list_approved(stage, scope)
    return [ApprovedRecordResponse.from_record(r) for r in records]


@router.get("/{project_id}/stages/{stage_id}/approval", response_model=ApprovalStatus)
async def approval_status(
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
):
    approved = await ApprovalEngine(db).is_approved(stage, scope)
    return ApprovalStatus(stage=stage.id.value, scope=scope.describe(), approved=approved)


@router.post("/{project_id}/stages/{stage_id}/revoke", response_model=RevokeResult)
async def revoke_stage(
    cascade: bool = True,
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
):
    service = ApprovalEngine(db)
    try:
        return await service.revoke(stage, scope, cascade=cascade)
    except PipelineError as e:
        raise http_error(e)
