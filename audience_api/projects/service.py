from typing import List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from audience_api.config import settings
from audience_api.projects.models import Project, Segment
from audience_api.projects.schemas import ProjectCreate, SegmentCreate
from audience_api.shared.exceptions import NotFoundError, ValidationError


class ProjectService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_project(self, project_in: ProjectCreate) -> Project:
        if project_in.native_language not in settings.SUPPORTED_LANGUAGES:
            raise ValidationError(f"Unsupported language: {project_in.native_language}")
        project = Project(
            name=project_in.name,
            brand_description=project_in.brand_description,
            product_description=project_in.product_description,
            native_language=project_in.native_language,
        )
        self.db.add(project)
        await self.db.commit()
        await self.db.refresh(project)
        return project

    async def get_project(self, project_id: UUID) -> Project:
        project = await self.db.get(Project, project_id)
        if not project:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def list_segments(self, project_id: UUID) -> List[Segment]:
        result = await self.db.execute(
            select(Segment)
            .where(Segment.project_id == project_id)
            .order_by(Segment.order_index, Segment.created_at)
        )
        return list(result.scalars().all())

    async def get_segment(self, project_id: UUID, segment_id: UUID) -> Segment:
        result = await self.db.execute(
            select(Segment).where(
                Segment.id == segment_id,
                Segment.project_id == project_id,
            )
        )
        segment = result.scalar_one_or_none()
        if not segment:
            raise NotFoundError(f"Segment {segment_id} not found in project {project_id}")
        return segment

    async def add_segment(self, project_id: UUID, segment_in: SegmentCreate) -> Segment:
        await self.get_project(project_id)

        order_index = segment_in.order_index
        if order_index is None:
            result = await self.db.execute(
                select(func.max(Segment.order_index)).where(Segment.project_id == project_id)
            )
            current_max = result.scalar()
            order_index = 0 if current_max is None else current_max + 1

        segment = Segment(
            project_id=project_id,
            name=segment_in.name,
            description=segment_in.description,
            order_index=order_index,
        )
        self.db.add(segment)
        await self.db.commit()
        await self.db.refresh(segment)
        return segment
