import pytest

from audience_api.registry import (
    Scope,
    ScopeShape,
    Stage,
    StageId,
    display_label,
    downstream_of,
    next_stage,
    ordered_stages,
    stage_of,
    upstream_of,
    validate_registry,
)
from audience_api.registry.payloads import EMPTY_LABEL, StagePayload, TriggerPayload
from audience_api.shared.exceptions import NotFoundError, RegistryError, ValidationError
from uuid import uuid4


def _stage(stage_id: StageId, shape=ScopeShape.SEGMENT, upstream=(), suffix=""):
    return Stage(
        id=stage_id,
        title=stage_id.value,
        description="",
        draft_store=f"{stage_id.value}{suffix}_drafts",
        approved_store=f"{stage_id.value}{suffix}_approved",
        scope_shape=shape,
        upstream=upstream,
        payload_model=StagePayload,
    )


def test_pipeline_order_starts_with_segments():
    order = [s.id for s in ordered_stages()]
    assert order[0] == StageId.SEGMENTS
    for stage in ordered_stages():
        for dep in stage.upstream:
            assert order.index(dep) < order.index(stage.id)


def test_upstream_and_downstream():
    assert upstream_of("canvas") == [StageId.PAINS_RANKING]
    assert upstream_of("segments") == []

    below_ranking = downstream_of("pains-ranking")
    assert StageId.CANVAS in below_ranking
    assert StageId.STRATEGY_PERSONALIZED in below_ranking
    assert StageId.UGC_PROFILES in below_ranking
    assert StageId.STRATEGY_SUMMARY not in below_ranking
    assert StageId.PAINS_RANKING not in below_ranking


def test_next_stage():
    assert next_stage("segments") == StageId.JOBS
    assert next_stage(ordered_stages()[-1]) is None


def test_unknown_stage_is_not_found():
    with pytest.raises(NotFoundError):
        stage_of("portrait")


def test_cycle_is_rejected():
    stages = (
        _stage(StageId.JOBS, upstream=(StageId.PREFERENCES,)),
        _stage(StageId.PREFERENCES, upstream=(StageId.JOBS,)),
    )
    with pytest.raises(RegistryError, match="Circular"):
        validate_registry(stages)


def test_finer_upstream_is_rejected():
    stages = (
        _stage(StageId.CANVAS, shape=ScopeShape.PAIN),
        _stage(StageId.JOBS, shape=ScopeShape.SEGMENT, upstream=(StageId.CANVAS,)),
    )
    with pytest.raises(RegistryError, match="finer"):
        validate_registry(stages)


def test_unknown_upstream_is_rejected():
    with pytest.raises(RegistryError, match="unknown"):
        validate_registry((_stage(StageId.JOBS, upstream=(StageId.SEGMENTS,)),))


def test_shared_store_is_rejected():
    first = _stage(StageId.JOBS)
    second = _stage(StageId.PREFERENCES).model_copy(update={"draft_store": first.draft_store})
    with pytest.raises(RegistryError, match="shared"):
        validate_registry((first, second))


def test_display_label_per_variant():
    assert TriggerPayload(signal="  New baby ").display_label() == "New baby"
    assert TriggerPayload(signal="   ").display_label() == EMPTY_LABEL
    assert display_label("jobs", {"job": "Cook faster"}) == "Cook faster"
    assert display_label("canvas", {"pain_name": "Dinner chaos"}) == "Dinner chaos"
    # Missing label field falls back to the dash
    assert display_label("jobs", {"description": "no job key"}) == EMPTY_LABEL


def test_scope_narrowing():
    scope = Scope(project_id=uuid4(), segment_id=uuid4(), pain_id=uuid4())
    assert scope.shape == ScopeShape.PAIN
    assert scope.narrow_to(ScopeShape.SEGMENT) == Scope(project_id=scope.project_id, segment_id=scope.segment_id)
    assert scope.narrow_to(ScopeShape.PROJECT).shape == ScopeShape.PROJECT

    with pytest.raises(ValidationError):
        Scope(project_id=scope.project_id).narrow_to(ScopeShape.SEGMENT)
    with pytest.raises(ValidationError):
        Scope(project_id=scope.project_id, pain_id=uuid4()).require_shape(ScopeShape.PAIN)
