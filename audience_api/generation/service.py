import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from audience_api.approvals.service import ApprovalEngine
from audience_api.audit.models import AuditEventType
from audience_api.drafts.schemas import DraftRowResponse
from audience_api.drafts.service import ORDINAL_KEY, PROTECTED_KEYS, DraftStore
from audience_api.gate.scopes import resolve_pain, scopes_for
from audience_api.gate.service import DependencyGate
from audience_api.generation.base import Generator
from audience_api.generation.schemas import FieldRegenerationResult, GenerationResult
from audience_api.projects.models import Project, Segment
from audience_api.registry import Scope, Stage, stage_of
from audience_api.shared.exceptions import (
    ExternalServiceError,
    NotFoundError,
    PipelineError,
    ValidationError,
)
from audience_api.shared.schemas import BatchOutcome, OutcomeStatus

logger = logging.getLogger(__name__)


async def build_context(db: AsyncSession, scope: Scope) -> Dict[str, Any]:
    """Project brief plus the segment and pain the scope points at."""
    project = await db.get(Project, scope.project_id)
    if project is None:
        raise NotFoundError(f"Project {scope.project_id} not found")

    context: Dict[str, Any] = {
        "project": {
            "name": project.name,
            "brand_description": project.brand_description,
            "product_description": project.product_description,
            "language": project.native_language,
        },
    }
    if scope.segment_id is not None:
        segment = await db.get(Segment, scope.segment_id)
        if segment is not None:
            context["segment"] = {"name": segment.name, "description": segment.description}
    if scope.pain_id is not None:
        context["pain"] = await resolve_pain(db, scope)
    return context


class GenerationService:
    """Fills a stage's draft store from the generator."""

    def __init__(self, db: AsyncSession, generator: Generator):
        self.db = db
        self.generator = generator
        self.gate = DependencyGate(db)
        self.approvals = ApprovalEngine(db)
        self.drafts = DraftStore(db)

    async def _upstream_context(self, stage: Stage, scope: Scope, instructions: str) -> Dict[str, Any]:
        context = await build_context(self.db, scope)
        upstream: Dict[str, List[Dict[str, Any]]] = {}
        for upstream_id in stage.upstream:
            up = stage_of(upstream_id)
            records = await self.approvals.list_approved(up, scope.narrow_to(up.scope_shape))
            upstream[up.id.value] = [dict(r.payload or {}) for r in records]
        context["upstream"] = upstream
        context["instructions"] = instructions
        return context

    def _validate_items(self, stage: Stage, items: Any) -> Tuple[List[Dict[str, Any]], int]:
        valid: List[Dict[str, Any]] = []
        dropped = 0
        for item in items if isinstance(items, list) else []:
            if not isinstance(item, dict):
                dropped += 1
                continue
            try:
                payload = stage.payload_model.model_validate(item)
            except PydanticValidationError as e:
                dropped += 1
                logger.warning("Dropping invalid %s item: %s", stage.id.value, e.errors()[:3])
                continue
            valid.append(payload.model_dump(mode="json", exclude_unset=True))
        return valid, dropped

    async def generate(self, stage_id, scope: Scope, instructions: str = "") -> GenerationResult:
        stage = stage_of(stage_id)
        scope.require_shape(stage.scope_shape)

        decision = await self.gate.can_enter(stage, scope)
        if not decision.allowed:
            return GenerationResult(
                stage=stage.id.value,
                scope=scope.describe(),
                blocked=True,
                blocking_stage=decision.blocking_stage,
                message=decision.message,
            )

        context = await self._upstream_context(stage, scope, instructions)
        # Close the read transaction; nothing is held while the generator runs
        await self.db.commit()

        try:
            items = await self.generator.generate(stage, scope, context)
        except PipelineError:
            raise
        except Exception as e:
            logger.exception("Generator failed for %s %s", stage.id.value, scope.describe())
            raise ExternalServiceError(f"Generation of {stage.id.value} failed: {e}") from e

        valid, dropped = self._validate_items(stage, items)
        if not valid:
            raise ExternalServiceError(
                f"Generator returned no valid {stage.id.value} items",
                {"dropped": dropped},
            )

        rows = await self.drafts.bulk_insert(stage, scope, valid)
        return GenerationResult(
            stage=stage.id.value,
            scope=scope.describe(),
            version=rows[0].version,
            drafts=[DraftRowResponse.from_row(r) for r in rows],
            dropped=dropped,
        )

    async def _generate_scope(self, stage: Stage, scope: Scope, instructions: str) -> BatchOutcome:
        try:
            result = await self.generate(stage, scope, instructions)
        except PipelineError as e:
            logger.warning("Batch generation of %s failed for %s: %s", stage.id.value, scope.describe(), e.message)
            return BatchOutcome(scope=scope.describe(), status=OutcomeStatus.FAILED, message=e.message)
        if result.blocked:
            return BatchOutcome(scope=scope.describe(), status=OutcomeStatus.BLOCKED, message=result.message)
        return BatchOutcome(scope=scope.describe(), status=OutcomeStatus.GENERATED, count=len(result.drafts))

    async def generate_all(self, stage_id, project_id: UUID, instructions: str = "") -> List[BatchOutcome]:
        """Generate every scope of the stage in turn. One failing scope never stops the rest."""
        stage = stage_of(stage_id)
        outcomes: List[BatchOutcome] = []
        for scope in await scopes_for(self.db, stage, project_id):
            outcomes.append(await self._generate_scope(stage, scope, instructions))
        return outcomes

    async def stream_all(self, stage_id, project_id: UUID, instructions: str = "") -> AsyncIterator[dict]:
        stage = stage_of(stage_id)
        scopes = await scopes_for(self.db, stage, project_id)
        yield {"event": "start", "data": json.dumps({"stage": stage.id.value, "total": len(scopes)})}

        counts: Dict[str, int] = {}
        for index, scope in enumerate(scopes):
            outcome = await self._generate_scope(stage, scope, instructions)
            counts[outcome.status.value] = counts.get(outcome.status.value, 0) + 1
            yield {
                "event": "outcome",
                "data": json.dumps({"index": index, **outcome.model_dump(mode="json")}),
            }

        yield {"event": "done", "data": json.dumps({"stage": stage.id.value, "total": len(scopes), **counts})}


def _belongs(row, scope: Scope) -> bool:
    if row.project_id != scope.project_id:
        return False
    if scope.segment_id is not None and row.segment_id != scope.segment_id:
        return False
    if scope.pain_id is not None and row.pain_id != scope.pain_id:
        return False
    return True


class FieldRegenerationService:
    """
    Regenerates one field of a draft.

    The generator runs with no transaction open, and only the regenerated key
    is written back, so edits made to other fields meanwhile survive.
    """

    def __init__(self, db: AsyncSession, generator: Generator):
        self.db = db
        self.generator = generator
        self.drafts = DraftStore(db)

    async def _prompt_context(self, row, context: str) -> str:
        scope = Scope(project_id=row.project_id, segment_id=row.segment_id, pain_id=row.pain_id)
        data = await build_context(self.db, scope)
        project = data["project"]
        lines = [f"Project: {project['name']}"]
        product = project.get("product_description") or project.get("brand_description")
        if product:
            lines.append(f"Product: {product}")
        segment = data.get("segment")
        if segment:
            lines.append(f"Segment: {segment['name']}")
            if segment.get("description"):
                lines.append(f"Segment description: {segment['description']}")
        lines.append(f"Draft: {json.dumps(row.payload or {}, ensure_ascii=False)}")
        if context:
            lines.append(f"Additional context: {context}")
        return "\n".join(lines)

    async def regenerate_field(
        self,
        stage_id,
        row_id: UUID,
        field_name: str,
        current_value: Any = None,
        context: str = "",
        scope: Optional[Scope] = None,
    ) -> FieldRegenerationResult:
        stage = stage_of(stage_id)
        if field_name in PROTECTED_KEYS or field_name == ORDINAL_KEY:
            raise ValidationError(f"Field {field_name!r} cannot be regenerated")

        row = await self.drafts.get_draft(stage, row_id)
        if scope is not None and not _belongs(row, scope):
            raise NotFoundError(f"Draft {row_id} not found in {scope.describe()}")
        if current_value is None:
            current_value = (row.payload or {}).get(field_name)
        prompt_context = await self._prompt_context(row, context)

        # No row lock or read transaction may be held across the generator call
        await self.db.commit()

        try:
            value = await self.generator.regenerate_field(field_name, current_value, prompt_context, stage=stage)
        except PipelineError:
            raise
        except Exception as e:
            logger.exception("Field regeneration failed for %s.%s", stage.id.value, field_name)
            raise ExternalServiceError(f"Regenerating {field_name!r} failed: {e}") from e

        if scope is not None:
            try:
                fresh = await self.drafts.get_draft(stage, row_id)
            except NotFoundError:
                raise NotFoundError(f"Draft {row_id} was deleted during regeneration, result discarded")
            if not _belongs(fresh, scope):
                raise NotFoundError(f"Draft {row_id} left {scope.describe()} during regeneration, result discarded")

        row = await self.drafts.patch_draft(
            stage,
            row_id,
            {field_name: value},
            event_type=AuditEventType.FIELD_REGENERATED,
        )
        return FieldRegenerationResult(
            stage=stage.id.value,
            row_id=row.id,
            field_name=field_name,
            value=value,
            draft=DraftRowResponse.from_row(row),
        )
