import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.approvals.queries import is_approved, is_approved_under
from audience_api.gate import scopes
from audience_api.gate.schemas import GateDecision, SegmentProgress
from audience_api.projects.models import Segment
from audience_api.registry import PAIN_SOURCE_STAGE, Scope, ScopeShape, ordered_stages, stage_of
from audience_api.shared.exceptions import StageLockedError

logger = logging.getLogger(__name__)


class DependencyGate:
    """Decides whether a stage may be worked on for a scope.

    A stage is open once every upstream stage has an approved set for the
    scope narrowed to that upstream's shape.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def can_enter(self, stage_id, scope: Scope) -> GateDecision:
        stage = stage_of(stage_id)
        scope.require_shape(stage.scope_shape)
        if stage.scope_shape == ScopeShape.PAIN:
            # Only the segment's approved TOP pains open pain-level work
            top_pains = await scopes.top_pain_ids(self.db, scope.project_id, scope.segment_id)
            if scope.pain_id not in top_pains:
                source = stage_of(PAIN_SOURCE_STAGE)
                return GateDecision(
                    stage=stage.id.value,
                    allowed=False,
                    blocking_stage=source.id.value,
                    message=(
                        f"Pain {scope.pain_id} is not an approved TOP pain of segment "
                        f"{scope.segment_id}. Mark it as a TOP pain in {source.title} and approve it first"
                    ),
                )
        for upstream_id in stage.upstream:
            upstream = stage_of(upstream_id)
            narrowed = scope.narrow_to(upstream.scope_shape)
            if not await is_approved(self.db, upstream, narrowed):
                return GateDecision(
                    stage=stage.id.value,
                    allowed=False,
                    blocking_stage=upstream.id.value,
                    message=(
                        f"Approve {upstream.title} ({upstream.id.value}) for "
                        f"{_scope_label(narrowed)} before working on {stage.title}"
                    ),
                )
        return GateDecision(stage=stage.id.value, allowed=True)

    async def require_entry(self, stage_id, scope: Scope) -> None:
        """Raise ``StageLockedError`` unless the stage is open for ``scope``."""
        decision = await self.can_enter(stage_id, scope)
        if not decision.allowed:
            raise StageLockedError(decision.message, {"blocking_stage": decision.blocking_stage})

    async def scopes_for(self, stage_id, project_id: UUID) -> List[Scope]:
        return await scopes.scopes_for(self.db, stage_id, project_id)

    async def progress(self, project_id: UUID) -> List[SegmentProgress]:
        result = await self.db.execute(
            select(Segment)
            .where(Segment.project_id == project_id)
            .order_by(Segment.order_index, Segment.created_at)
        )
        segments = result.scalars().all()

        report: List[SegmentProgress] = []
        for segment in segments:
            segment_scope = Scope(project_id=project_id, segment_id=segment.id)
            completed: List[str] = []
            current = None
            for stage in ordered_stages():
                if stage.scope_shape == ScopeShape.PROJECT:
                    done = await is_approved(self.db, stage, segment_scope.narrow_to(ScopeShape.PROJECT))
                elif stage.scope_shape == ScopeShape.SEGMENT:
                    done = await is_approved(self.db, stage, segment_scope)
                else:
                    # Pain stages count once any pain of the segment is approved
                    done = await is_approved_under(self.db, stage, segment_scope)

                if done:
                    completed.append(stage.id.value)
                elif current is None and await self._segment_can_enter(stage, segment_scope):
                    current = stage.id.value

            report.append(SegmentProgress(
                segment_id=segment.id,
                segment_name=segment.name,
                completed_stages=completed,
                current_stage=current,
            ))
        return report

    async def _segment_can_enter(self, stage, segment_scope: Scope) -> bool:
        if stage.scope_shape == ScopeShape.PROJECT:
            decision = await self.can_enter(stage, segment_scope.narrow_to(ScopeShape.PROJECT))
            return decision.allowed
        if stage.scope_shape == ScopeShape.SEGMENT:
            decision = await self.can_enter(stage, segment_scope)
            return decision.allowed
        pain_ids = await scopes.top_pain_ids(self.db, segment_scope.project_id, segment_scope.segment_id)
        for pain_id in pain_ids:
            pain_scope = Scope(
                project_id=segment_scope.project_id,
                segment_id=segment_scope.segment_id,
                pain_id=pain_id,
            )
            decision = await self.can_enter(stage, pain_scope)
            if decision.allowed:
                return True
        return False


def _scope_label(scope: Scope) -> str:
    parts = [f"project {scope.project_id}"]
    if scope.segment_id is not None:
        parts.append(f"segment {scope.segment_id}")
    if scope.pain_id is not None:
        parts.append(f"pain {scope.pain_id}")
    return ", ".join(parts)
