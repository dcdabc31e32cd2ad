import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.approvals.models import ApprovedRecord
from audience_api.projects.models import Segment
from audience_api.registry import PAIN_ID_KEY, PAIN_SOURCE_STAGE, Scope, ScopeShape, stage_of

logger = logging.getLogger(__name__)


def pain_id_of(record: ApprovedRecord) -> UUID:
    """The pain a ranking record stands for: its payload pain id, else the record id."""
    raw = (record.payload or {}).get(PAIN_ID_KEY)
    if raw:
        try:
            return UUID(str(raw))
        except ValueError:
            logger.debug("Ranking record %s has non-UUID pain id %r, using record id", record.id, raw)
    return record.id


async def _top_pain_records(db: AsyncSession, project_id: UUID, segment_id: UUID) -> List[ApprovedRecord]:
    source = stage_of(PAIN_SOURCE_STAGE)
    result = await db.execute(
        select(ApprovedRecord)
        .where(
            ApprovedRecord.store == source.approved_store,
            ApprovedRecord.project_id == project_id,
            ApprovedRecord.segment_id == segment_id,
        )
        .order_by(ApprovedRecord.ordinal, ApprovedRecord.id)
    )
    return [
        record for record in result.scalars().all()
        if (record.payload or {}).get(source.ranking_flag) is True
    ]


async def top_pain_ids(db: AsyncSession, project_id: UUID, segment_id: UUID) -> List[UUID]:
    """Pains flagged as top in the segment's approved ranking, in ranking order."""
    pain_ids: List[UUID] = []
    for record in await _top_pain_records(db, project_id, segment_id):
        pain_id = pain_id_of(record)
        if pain_id not in pain_ids:
            pain_ids.append(pain_id)
    return pain_ids


async def resolve_pain(db: AsyncSession, scope: Scope) -> Optional[Dict[str, Any]]:
    """Payload of the approved top pain a pain scope points at, if it still exists."""
    if scope.pain_id is None or scope.segment_id is None:
        return None
    for record in await _top_pain_records(db, scope.project_id, scope.segment_id):
        if pain_id_of(record) == scope.pain_id:
            return dict(record.payload or {})
    return None


async def scopes_for(db: AsyncSession, stage_id, project_id: UUID) -> List[Scope]:
    """Every scope a batch loop over ``stage_id`` visits inside the project."""
    stage = stage_of(stage_id)
    if stage.scope_shape == ScopeShape.PROJECT:
        return [Scope(project_id=project_id)]

    result = await db.execute(
        select(Segment.id)
        .where(Segment.project_id == project_id)
        .order_by(Segment.order_index, Segment.created_at)
    )
    segment_ids = list(result.scalars().all())
    if stage.scope_shape == ScopeShape.SEGMENT:
        return [Scope(project_id=project_id, segment_id=sid) for sid in segment_ids]

    scopes: List[Scope] = []
    for sid in segment_ids:
        for pain_id in await top_pain_ids(db, project_id, sid):
            scopes.append(Scope(project_id=project_id, segment_id=sid, pain_id=pain_id))
    return scopes
