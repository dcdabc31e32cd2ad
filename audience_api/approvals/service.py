import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.approvals import queries
from audience_api.approvals.models import ApprovedRecord
from audience_api.approvals.schemas import ApprovalResult, ApprovedRecordResponse, RevokeResult
from audience_api.audit.models import AuditEvent, AuditEventType
from audience_api.drafts.models import DraftRow
from audience_api.drafts.service import DraftStore
from audience_api.gate.scopes import scopes_for
from audience_api.gate.service import DependencyGate
from audience_api.projects.models import Project
from audience_api.registry import (
    Scope,
    Stage,
    downstream_of,
    next_stage,
    stage_of,
    stage_position,
)
from audience_api.shared.exceptions import (
    NotFoundError,
    PipelineError,
    TransientStoreError,
    ValidationError,
)
from audience_api.shared.models import prefix_filter, scope_filter
from audience_api.shared.schemas import BatchOutcome, OutcomeStatus

logger = logging.getLogger(__name__)


class ApprovalEngine:
    """
    Promotes drafts to the approved store of their stage.

    Approval is a wholesale replacement of the scope's approved set, done in
    one transaction together with its audit event. Drafts are left in place.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _select_scope(self, stage: Stage, scope: Scope):
        return select(ApprovedRecord).where(
            ApprovedRecord.store == stage.approved_store,
            *scope_filter(ApprovedRecord, scope),
        )

    async def is_approved(self, stage_id, scope: Scope) -> bool:
        return await queries.is_approved(self.db, stage_id, scope)

    async def is_approved_under(self, stage_id, scope: Scope) -> bool:
        """Whether any record of the stage exists at or below ``scope``."""
        return await queries.is_approved_under(self.db, stage_id, scope)

    async def list_approved(self, stage_id, scope: Scope) -> List[ApprovedRecord]:
        stage = stage_of(stage_id)
        result = await self.db.execute(
            self._select_scope(stage, scope)
            .order_by(ApprovedRecord.ordinal, ApprovedRecord.approved_at, ApprovedRecord.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _load_selected(self, stage: Stage, scope: Scope, row_ids: Sequence[UUID]) -> List[DraftRow]:
        result = await self.db.execute(
            select(DraftRow)
            .where(
                DraftRow.id.in_(row_ids),
                DraftRow.store == stage.draft_store,
                *scope_filter(DraftRow, scope),
            )
            .order_by(DraftRow.ordinal, DraftRow.created_at, DraftRow.id)
            .execution_options(populate_existing=True)
        )
        drafts = list(result.scalars().all())
        missing = [str(rid) for rid in row_ids if rid not in {d.id for d in drafts}]
        if missing:
            raise NotFoundError(
                f"Drafts not found in {stage.id.value} for this scope: {', '.join(missing)}",
                {"missing": missing},
            )
        return drafts

    async def approve(self, stage_id, scope: Scope, row_ids: Sequence[UUID]) -> ApprovalResult:
        stage = stage_of(stage_id)
        # Keep caller order, drop repeats
        row_ids = list(dict.fromkeys(row_ids or []))
        if not row_ids:
            raise ValidationError("Select at least one draft to approve")
        scope.require_shape(stage.scope_shape)

        try:
            drafts = await self._load_selected(stage, scope, row_ids)
            if stage.is_ranking and not any((d.payload or {}).get(stage.ranking_flag) is True for d in drafts):
                raise ValidationError("no top item selected", {"ranking_flag": stage.ranking_flag})
            await DependencyGate(self.db).require_entry(stage, scope)

            previous = await self.list_approved(stage, scope)
            previous_payloads = [record.payload for record in previous]
            await self.db.execute(
                delete(ApprovedRecord)
                .where(ApprovedRecord.store == stage.approved_store, *scope_filter(ApprovedRecord, scope))
                .execution_options(synchronize_session="fetch")
            )

            approved_at = datetime.utcnow()
            records = [
                ApprovedRecord(
                    store=stage.approved_store,
                    stage=stage.id.value,
                    project_id=scope.project_id,
                    segment_id=scope.segment_id,
                    pain_id=scope.pain_id,
                    ordinal=draft.ordinal,
                    payload=dict(draft.payload or {}),
                    source_draft_id=draft.id,
                    source_version=draft.version,
                    approved_at=approved_at,
                )
                for draft in drafts
            ]
            self.db.add_all(records)

            self.db.add(AuditEvent(
                project_id=scope.project_id,
                event_type=AuditEventType.STAGE_APPROVED,
                stage=stage.id.value,
                segment_id=scope.segment_id,
                pain_id=scope.pain_id,
                detail={
                    "row_ids": [str(d.id) for d in drafts],
                    "previous": previous_payloads,
                    "new": [r.payload for r in records],
                },
            ))
            await self._advance_project(scope.project_id, stage)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Approval of %s for %s failed", stage.id.value, scope.describe())
            raise TransientStoreError(
                f"Approval of {stage.id.value} failed, previous approvals are unchanged. Retry the operation."
            ) from e

        logger.info("Approved %d %s records for %s", len(records), stage.id.value, scope.describe())
        return ApprovalResult(
            stage=stage.id.value,
            scope=scope.describe(),
            records=[ApprovedRecordResponse.from_record(r) for r in records],
            replaced=len(previous_payloads),
        )

    async def _advance_project(self, project_id: UUID, stage: Stage) -> None:
        project = await self.db.get(Project, project_id)
        if project is None:
            return
        target = next_stage(stage.id) or stage.id
        if stage_position(target) > stage_position(project.current_stage or ""):
            project.current_stage = target.value

    async def approve_all(
        self,
        stage_id,
        project_id: UUID,
        selection: Optional[Sequence[UUID]] = None,
    ) -> List[BatchOutcome]:
        """
        Approve every scope of the stage one after another.

        With ``selection`` each scope approves the selected drafts it owns;
        without, the latest generation pass. A failing scope is reported and
        the loop moves on; scopes approved before it stay approved.
        """
        stage = stage_of(stage_id)
        drafts = DraftStore(self.db)
        selected = set(selection) if selection is not None else None
        outcomes: List[BatchOutcome] = []

        for scope in await scopes_for(self.db, stage, project_id):
            rows = await drafts.list_drafts(stage, scope)
            if selected is not None:
                row_ids = [row.id for row in rows if row.id in selected]
            else:
                latest = max((row.version for row in rows), default=None)
                row_ids = [row.id for row in rows if row.version == latest]

            if not row_ids:
                outcomes.append(BatchOutcome(
                    scope=scope.describe(),
                    status=OutcomeStatus.SKIPPED,
                    message="No drafts to approve",
                ))
                continue

            try:
                result = await self.approve(stage, scope, row_ids)
            except PipelineError as e:
                logger.warning("Batch approval of %s failed for %s: %s", stage.id.value, scope.describe(), e.message)
                outcomes.append(BatchOutcome(
                    scope=scope.describe(),
                    status=OutcomeStatus.FAILED,
                    message=e.message,
                ))
                continue

            outcomes.append(BatchOutcome(
                scope=scope.describe(),
                status=OutcomeStatus.APPROVED,
                count=len(result.records),
            ))
        return outcomes

    async def revoke(self, stage_id, scope: Scope, cascade: bool = True) -> RevokeResult:
        """
        Remove the stage's approved records for ``scope``.

        With ``cascade`` the approvals of every downstream stage at or below
        the same scope go too, and the project step is rewound to this stage.
        """
        stage = stage_of(stage_id)
        scope.require_shape(stage.scope_shape)
        targets = [stage] + ([stage_of(sid) for sid in downstream_of(stage)] if cascade else [])

        revoked: Dict[str, int] = {}
        try:
            for target in targets:
                result = await self.db.execute(
                    select(ApprovedRecord.id)
                    .where(ApprovedRecord.store == target.approved_store, *prefix_filter(ApprovedRecord, scope))
                )
                record_ids = list(result.scalars().all())
                if not record_ids:
                    continue
                await self.db.execute(
                    delete(ApprovedRecord)
                    .where(ApprovedRecord.id.in_(record_ids))
                    .execution_options(synchronize_session="fetch")
                )
                revoked[target.id.value] = len(record_ids)

            project = await self.db.get(Project, scope.project_id)
            if project is not None and stage_position(project.current_stage or "") > stage_position(stage):
                project.current_stage = stage.id.value

            self.db.add(AuditEvent(
                project_id=scope.project_id,
                event_type=AuditEventType.STAGE_REVOKED,
                stage=stage.id.value,
                segment_id=scope.segment_id,
                pain_id=scope.pain_id,
                detail={"revoked": revoked, "cascade": cascade},
            ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Revoking %s for %s failed", stage.id.value, scope.describe())
            raise TransientStoreError(f"Revoking {stage.id.value} failed, retry the operation") from e

        return RevokeResult(stage=stage.id.value, scope=scope.describe(), revoked=revoked)
