from typing import List
from uuid import UUID

from fastapi import APIRouter, HTTPException, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.database import get_db
from audience_api.drafts.schemas import DraftCreate, DraftPatch, DraftRowResponse, VersionDeleteResponse
from audience_api.drafts.service import DraftStore
from audience_api.projects.dependencies import get_scope, require_project
from audience_api.projects.models import Project
from audience_api.registry import Scope, Stage
from audience_api.registry.dependencies import get_stage
from audience_api.shared.exceptions import NotFoundError, PipelineError
from audience_api.shared.http import http_error

router = APIRouter(prefix="/projects", tags=["drafts"])


@router.get("/{project_id}/stages/{stage_id}/drafts", response_model=List[DraftRowResponse])
async def list_drafts(
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
):
    rows = await DraftStore(db).list_drafts(stage, scope)
    return [DraftRowResponse.from_row(row) for row in rows]


@router.post("/{project_id}/stages/{stage_id}/drafts", response_model=DraftRowResponse, status_code=201)
async def create_draft(
    request: DraftCreate,
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
):
    service = DraftStore(db)
    try:
        row = await service.create_draft(stage, scope, request.payload)
        return DraftRowResponse.from_row(row)
    except PipelineError as e:
        raise http_error(e)


@router.delete(
    "/{project_id}/stages/{stage_id}/drafts/versions/{version}",
    response_model=VersionDeleteResponse,
)
async def delete_draft_version(
    version: int,
    stage: Stage = Depends(get_stage),
    scope: Scope = Depends(get_scope),
    db: AsyncSession = Depends(get_db),
):
    service = DraftStore(db)
    try:
        deleted = await service.delete_version(stage, scope, version)
        return VersionDeleteResponse(version=version, deleted=deleted)
    except PipelineError as e:
        raise http_error(e)


@router.patch("/{project_id}/stages/{stage_id}/drafts/{row_id}", response_model=DraftRowResponse)
async def patch_draft(
    row_id: UUID,
    request: DraftPatch,
    project: Project = Depends(require_project),
    stage: Stage = Depends(get_stage),
    db: AsyncSession = Depends(get_db),
):
    service = DraftStore(db)
    try:
        row = await service.get_draft(stage, row_id)
        if row.project_id != project.id:
            raise NotFoundError(f"Draft {row_id} not found in project {project.id}")
        row = await service.patch_draft(stage, row_id, request.fields, request.expected_version)
        return DraftRowResponse.from_row(row)
    except PipelineError as e:
        raise http_error(e)


@router.delete("/{project_id}/stages/{stage_id}/drafts/{row_id}", status_code=204)
async def delete_draft(
    row_id: UUID,
    project: Project = Depends(require_project),
    stage: Stage = Depends(get_stage),
    db: AsyncSession = Depends(get_db),
):
    service = DraftStore(db)
    try:
        row = await service.get_draft(stage, row_id)
    except NotFoundError:
        # Already gone
        return Response(status_code=204)
    if row.project_id != project.id:
        raise HTTPException(status_code=404, detail="Draft not found")
    try:
        await service.delete_draft(stage, row_id)
    except PipelineError as e:
        raise http_error(e)
    return Response(status_code=204)
