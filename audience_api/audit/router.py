from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.database import get_db
from audience_api.audit.models import AuditEvent
from audience_api.audit.schemas import AuditEventResponse
from audience_api.projects.dependencies import require_project
from audience_api.projects.models import Project

router = APIRouter(prefix="/projects", tags=["audit"])


@router.get("/{project_id}/audit", response_model=List[AuditEventResponse])
async def list_audit_events(
    project_id: UUID,
    project: Project = Depends(require_project),
    db: AsyncSession = Depends(get_db),
):
    stmt = (
        select(AuditEvent)
        .where(AuditEvent.project_id == project_id)
        .order_by(desc(AuditEvent.created_at))
    )
    result = await db.execute(stmt)
    return result.scalars().all()
