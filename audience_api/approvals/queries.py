from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.approvals.models import ApprovedRecord
from audience_api.registry import Scope, stage_of
from audience_api.shared.models import prefix_filter, scope_filter


async def is_approved(db: AsyncSession, stage_id, scope: Scope) -> bool:
    """Fresh existence check of the stage's approved set for exactly ``scope``."""
    stage = stage_of(stage_id)
    result = await db.execute(
        select(ApprovedRecord.id)
        .where(ApprovedRecord.store == stage.approved_store, *scope_filter(ApprovedRecord, scope))
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def is_approved_under(db: AsyncSession, stage_id, scope: Scope) -> bool:
    """Whether any record of the stage exists at or below ``scope``."""
    stage = stage_of(stage_id)
    result = await db.execute(
        select(ApprovedRecord.id)
        .where(ApprovedRecord.store == stage.approved_store, *prefix_filter(ApprovedRecord, scope))
        .limit(1)
    )
    return result.scalar_one_or_none() is not None
