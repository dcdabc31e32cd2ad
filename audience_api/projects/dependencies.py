from typing import Optional
from uuid import UUID
from fastapi import Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.database import get_db
from audience_api.projects.models import Project, Segment
from audience_api.registry import Scope


async def require_project(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> Project:
    """Resolve the ``project_id`` path param or raise 404.

    Use as a dependency on any endpoint scoped to a project.
    """
    project = await db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def get_scope(
    project_id: UUID,
    segment_id: Optional[UUID] = None,
    pain_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
) -> Scope:
    """Build a Scope from the path project and optional query keys."""
    project = await require_project(project_id, db)
    if segment_id is not None:
        result = await db.execute(
            select(Segment.id).where(Segment.id == segment_id, Segment.project_id == project.id)
        )
        if result.scalar_one_or_none() is None:
            raise HTTPException(status_code=404, detail="Segment not found")
    elif pain_id is not None:
        raise HTTPException(status_code=400, detail="A pain scope requires a segment_id")
    return Scope(project_id=project.id, segment_id=segment_id, pain_id=pain_id)
