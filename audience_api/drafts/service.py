import logging
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.audit.models import AuditEvent, AuditEventType
from audience_api.drafts.models import DraftRow
from audience_api.gate.service import DependencyGate
from audience_api.registry import InsertMode, Scope, Stage, stage_of
from audience_api.shared.exceptions import (
    ConflictError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from audience_api.shared.models import scope_filter

logger = logging.getLogger(__name__)

# Row identity and bookkeeping; never writable through a payload edit
PROTECTED_KEYS = frozenset({"id", "project_id", "segment_id", "pain_id", "version", "created_at"})
ORDINAL_KEY = "ordinal"


def _coerce_ordinal(value: Any, default: Optional[int] = None) -> int:
    if value is None:
        if default is None:
            raise ValidationError("Ordinal is required")
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"Ordinal must be a non-negative integer, got {value!r}")
    return value


def format_payload_errors(exc: PydanticValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}" for err in exc.errors()]


class DraftStore:
    """Generic CRUD over the draft rows of every stage.

    Rows of all stages share one table, partitioned by the stage's draft
    store id. Reads are exact on the scope key.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _select_scope(self, stage: Stage, scope: Scope):
        return select(DraftRow).where(
            DraftRow.store == stage.draft_store,
            *scope_filter(DraftRow, scope),
        )

    def _record(self, event_type: AuditEventType, stage: Stage, row_or_scope, detail: Optional[dict] = None) -> None:
        self.db.add(AuditEvent(
            project_id=row_or_scope.project_id,
            event_type=event_type,
            stage=stage.id.value,
            segment_id=row_or_scope.segment_id,
            pain_id=row_or_scope.pain_id,
            detail=detail,
        ))

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Draft store write failed")
            raise TransientStoreError("Draft store is temporarily unavailable, retry the operation") from e

    async def list_drafts(self, stage_id, scope: Scope) -> List[DraftRow]:
        stage = stage_of(stage_id)
        result = await self.db.execute(
            self._select_scope(stage, scope)
            .order_by(DraftRow.ordinal, DraftRow.created_at, DraftRow.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_draft(self, stage_id, row_id: UUID) -> DraftRow:
        stage = stage_of(stage_id)
        result = await self.db.execute(
            select(DraftRow)
            .where(DraftRow.id == row_id, DraftRow.store == stage.draft_store)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Draft {row_id} not found in stage {stage.id.value!r}")
        return row

    async def latest_version(self, stage_id, scope: Scope) -> Optional[int]:
        stage = stage_of(stage_id)
        result = await self.db.execute(
            select(func.max(DraftRow.version)).where(
                DraftRow.store == stage.draft_store,
                *scope_filter(DraftRow, scope),
            )
        )
        return result.scalar()

    async def patch_draft(
        self,
        stage_id,
        row_id: UUID,
        partial: Dict[str, Any],
        expected_version: Optional[int] = None,
        event_type: AuditEventType = AuditEventType.DRAFT_EDITED,
    ) -> DraftRow:
        """
        Shallow-merge ``partial`` onto the stored payload, one top-level key at a time.

        The row is re-read under a row lock so keys written by a concurrent
        edit since the caller's own read are preserved. The version is left
        alone: it identifies the generation pass, not the edit count.
        """
        stage = stage_of(stage_id)
        if not partial:
            raise ValidationError("Nothing to update")
        blocked = sorted(PROTECTED_KEYS.intersection(partial))
        if blocked:
            raise ValidationError(
                f"Protected keys cannot be edited: {', '.join(blocked)}",
                {"keys": blocked},
            )

        result = await self.db.execute(
            select(DraftRow)
            .where(DraftRow.id == row_id, DraftRow.store == stage.draft_store)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Draft {row_id} not found in stage {stage.id.value!r}")
        if expected_version is not None and row.version != expected_version:
            raise ConflictError(
                f"Draft {row_id} is at version {row.version}, expected {expected_version}",
                {"current_version": row.version},
            )

        changes = dict(partial)
        if ORDINAL_KEY in changes:
            row.ordinal = _coerce_ordinal(changes.pop(ORDINAL_KEY))
        if changes:
            # New dict so the JSON column registers the change
            row.payload = {**(row.payload or {}), **changes}

        self._record(event_type, stage, row, {"row_id": str(row.id), "fields": sorted(partial)})
        await self._commit()
        await self.db.refresh(row)
        return row

    async def delete_draft(self, stage_id, row_id: UUID) -> None:
        stage = stage_of(stage_id)
        result = await self.db.execute(
            select(DraftRow).where(DraftRow.id == row_id, DraftRow.store == stage.draft_store)
        )
        row = result.scalar_one_or_none()
        if row is None:
            logger.debug("Draft %s of stage %s already deleted", row_id, stage.id.value)
            return

        self._record(AuditEventType.DRAFT_DELETED, stage, row, {
            "row_id": str(row.id),
            "version": row.version,
            "payload": row.payload,
        })
        await self.db.delete(row)
        await self._commit()

    async def bulk_insert(self, stage_id, scope: Scope, items: Sequence[Dict[str, Any]]) -> List[DraftRow]:
        """
        Store one generation pass for ``scope``.

        Every row written gets ``version = latest + 1``. Replace stages drop
        the scope's previous drafts first; augment stages overwrite the rows
        whose ordinal slot is regenerated and keep the others.
        """
        stage = stage_of(stage_id)
        scope.require_shape(stage.scope_shape)
        if not items:
            raise ValidationError("No drafts to insert")

        current = await self.latest_version(stage, scope)
        version = (current or 0) + 1

        # A later item claiming the same slot wins it
        slots: Dict[int, Dict[str, Any]] = {}
        for index, item in enumerate(items):
            payload = dict(item)
            ordinal = _coerce_ordinal(payload.pop(ORDINAL_KEY, None), default=index)
            slots[ordinal] = payload

        existing: Dict[int, DraftRow] = {}
        if stage.insert_mode == InsertMode.REPLACE:
            await self.db.execute(
                delete(DraftRow)
                .where(DraftRow.store == stage.draft_store, *scope_filter(DraftRow, scope))
                .execution_options(synchronize_session="fetch")
            )
        else:
            existing = {row.ordinal: row for row in await self.list_drafts(stage, scope)}

        rows: List[DraftRow] = []
        for ordinal in sorted(slots):
            row = existing.get(ordinal)
            if row is None:
                row = DraftRow(
                    store=stage.draft_store,
                    stage=stage.id.value,
                    project_id=scope.project_id,
                    segment_id=scope.segment_id,
                    pain_id=scope.pain_id,
                    ordinal=ordinal,
                    payload=slots[ordinal],
                    version=version,
                )
                self.db.add(row)
            else:
                row.payload = slots[ordinal]
                row.version = version
            rows.append(row)

        self._record(AuditEventType.DRAFTS_GENERATED, stage, scope, {
            "version": version,
            "count": len(rows),
            "mode": stage.insert_mode.value,
        })
        await self._commit()
        logger.info(
            "Stored %d %s drafts (version %d) for %s",
            len(rows), stage.id.value, version, scope.describe(),
        )
        return rows

    async def create_draft(self, stage_id, scope: Scope, payload: Dict[str, Any]) -> DraftRow:
        """Add a hand-written draft to the scope's current generation pass."""
        stage = stage_of(stage_id)
        scope.require_shape(stage.scope_shape)

        data = dict(payload)
        data.pop(ORDINAL_KEY, None)
        blocked = sorted(PROTECTED_KEYS.intersection(data))
        if blocked:
            raise ValidationError(f"Protected keys cannot be set: {', '.join(blocked)}", {"keys": blocked})
        try:
            stage.payload_model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {stage.id.value} draft",
                {"errors": format_payload_errors(e)},
            )
        await DependencyGate(self.db).require_entry(stage, scope)

        version = await self.latest_version(stage, scope) or 1
        result = await self.db.execute(
            select(func.max(DraftRow.ordinal)).where(
                DraftRow.store == stage.draft_store,
                *scope_filter(DraftRow, scope),
            )
        )
        max_ordinal = result.scalar()

        row = DraftRow(
            store=stage.draft_store,
            stage=stage.id.value,
            project_id=scope.project_id,
            segment_id=scope.segment_id,
            pain_id=scope.pain_id,
            ordinal=0 if max_ordinal is None else max_ordinal + 1,
            payload=data,
            version=version,
        )
        self.db.add(row)
        await self.db.flush()
        self._record(AuditEventType.DRAFT_CREATED, stage, scope, {"row_id": str(row.id), "version": version})
        await self._commit()
        await self.db.refresh(row)
        return row

    async def delete_version(self, stage_id, scope: Scope, version: int) -> int:
        """Drop every draft of one generation pass. Returns the number of rows removed."""
        stage = stage_of(stage_id)
        result = await self.db.execute(
            select(DraftRow.id).where(
                DraftRow.store == stage.draft_store,
                DraftRow.version == version,
                *scope_filter(DraftRow, scope),
            )
        )
        row_ids = list(result.scalars().all())
        deleted = len(row_ids)
        if not deleted:
            logger.debug("No %s drafts of version %d for %s", stage.id.value, version, scope.describe())
            return 0

        await self.db.execute(
            delete(DraftRow)
            .where(DraftRow.id.in_(row_ids))
            .execution_options(synchronize_session="fetch")
        )
        self._record(AuditEventType.DRAFT_VERSION_DELETED, stage, scope, {"version": version, "deleted": deleted})
        await self._commit()
        return deleted
