from typing import List
from uuid import UUID
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.database import get_db
from audience_api.projects.dependencies import require_project
from audience_api.projects.models import Project
from audience_api.projects.schemas import ProjectCreate, ProjectResponse, SegmentCreate, SegmentResponse
from audience_api.projects.service import ProjectService
from audience_api.shared.exceptions import NotFoundError, ValidationError

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(
    request: ProjectCreate,
    db: AsyncSession = Depends(get_db),
):
    service = ProjectService(db)
    try:
        return await service.create_project(request)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project: Project = Depends(require_project)):
    return project


@router.get("/{project_id}/segments", response_model=List[SegmentResponse])
async def list_segments(
    project_id: UUID,
    project: Project = Depends(require_project),
    db: AsyncSession = Depends(get_db),
):
    return await ProjectService(db).list_segments(project_id)


@router.post("/{project_id}/segments", response_model=SegmentResponse, status_code=201)
async def add_segment(
    project_id: UUID,
    request: SegmentCreate,
    project: Project = Depends(require_project),
    db: AsyncSession = Depends(get_db),
):
    service = ProjectService(db)
    try:
        return await service.add_segment(project_id, request)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
