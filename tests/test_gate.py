import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import uuid4

from audience_api.approvals.service import ApprovalEngine
from audience_api.gate.scopes import resolve_pain, top_pain_ids
from audience_api.gate.service import DependencyGate
from audience_api.registry import Scope
from audience_api.shared.exceptions import ValidationError


@pytest.mark.asyncio
async def test_first_stage_is_always_open(db_session: AsyncSession, project_ids):
    decision = await DependencyGate(db_session).can_enter("segments", project_ids.project_scope())
    assert decision.allowed
    assert decision.blocking_stage is None


@pytest.mark.asyncio
async def test_gate_reports_blocking_stage(db_session: AsyncSession, project_ids):
    decision = await DependencyGate(db_session).can_enter("jobs", project_ids.segment_scope())

    assert not decision.allowed
    assert decision.blocking_stage == "segments"
    assert "Segments" in decision.message


@pytest.mark.asyncio
async def test_gate_is_per_segment(db_session: AsyncSession, project_ids, seed_approved):
    gate = DependencyGate(db_session)
    await seed_approved("pains", project_ids.segment_scope(0))

    first = await gate.can_enter("pains-ranking", project_ids.segment_scope(0))
    second = await gate.can_enter("pains-ranking", project_ids.segment_scope(1))

    assert first.allowed
    assert not second.allowed
    assert second.blocking_stage == "pains"


@pytest.mark.asyncio
async def test_gate_narrows_to_upstream_shape(db_session: AsyncSession, project_ids, seed_approved):
    gate = DependencyGate(db_session)
    await seed_approved("pains-ranking", project_ids.segment_scope(0))
    [pain_id] = await top_pain_ids(db_session, project_ids.project_id, project_ids.segment_ids[0])
    pain_scope = project_ids.pain_scope(pain_id)

    assert (await gate.can_enter("canvas", pain_scope)).allowed

    # Several upstreams: the first unapproved one blocks
    decision = await gate.can_enter("strategy-personalized", pain_scope)
    assert decision.blocking_stage == "canvas-extended"


@pytest.mark.asyncio
async def test_pain_stages_open_only_for_top_pains(db_session: AsyncSession, project_ids, seed_approved):
    gate = DependencyGate(db_session)
    unknown_scope = project_ids.pain_scope(uuid4())

    decision = await gate.can_enter("canvas", unknown_scope)
    assert not decision.allowed
    assert decision.blocking_stage == "pains-ranking"

    await seed_approved("pains-ranking", project_ids.segment_scope(0))

    # An approved ranking does not open an arbitrary pain
    decision = await gate.can_enter("canvas", unknown_scope)
    assert not decision.allowed
    assert decision.blocking_stage == "pains-ranking"
    assert "TOP pain" in decision.message

    ranked = await ApprovalEngine(db_session).list_approved("pains-ranking", project_ids.segment_scope(0))
    not_top = next(r for r in ranked if not r.payload.get("is_top_pain"))
    assert not (await gate.can_enter("canvas", project_ids.pain_scope(not_top.id))).allowed

    [pain_id] = await top_pain_ids(db_session, project_ids.project_id, project_ids.segment_ids[0])
    assert (await gate.can_enter("canvas", project_ids.pain_scope(pain_id))).allowed
    # Top pains belong to their segment
    assert not (await gate.can_enter("canvas", project_ids.pain_scope(pain_id, 1))).allowed


@pytest.mark.asyncio
async def test_gate_rejects_wrong_scope_shape(db_session: AsyncSession, project_ids):
    with pytest.raises(ValidationError):
        await DependencyGate(db_session).can_enter("jobs", project_ids.project_scope())


@pytest.mark.asyncio
async def test_progress_without_approvals(db_session: AsyncSession, project_ids):
    report = await DependencyGate(db_session).progress(project_ids.project_id)

    assert [p.segment_name for p in report] == ["Parents", "Students"]
    assert all(p.completed_stages == [] for p in report)
    assert all(p.current_stage == "segments" for p in report)


@pytest.mark.asyncio
async def test_progress_tracks_each_segment(db_session: AsyncSession, project_ids, seed_approved):
    await seed_approved("segments", project_ids.project_scope())
    await seed_approved("jobs", project_ids.segment_scope(0))

    parents, students = await DependencyGate(db_session).progress(project_ids.project_id)

    assert parents.completed_stages == ["segments", "jobs"]
    assert parents.current_stage == "preferences"
    assert students.completed_stages == ["segments"]
    assert students.current_stage == "jobs"


@pytest.mark.asyncio
async def test_progress_counts_pain_stages(db_session: AsyncSession, project_ids, seed_approved):
    segment_scope = project_ids.segment_scope(0)
    await seed_approved("pains-ranking", segment_scope)
    [pain_id] = await top_pain_ids(db_session, project_ids.project_id, project_ids.segment_ids[0])
    await seed_approved("canvas", project_ids.pain_scope(pain_id))

    parents, _ = await DependencyGate(db_session).progress(project_ids.project_id)

    assert "canvas" in parents.completed_stages
    assert "canvas-extended" not in parents.completed_stages


@pytest.mark.asyncio
async def test_scopes_follow_top_pains(db_session: AsyncSession, project_ids, seed_approved):
    gate = DependencyGate(db_session)
    assert await gate.scopes_for("canvas", project_ids.project_id) == []
    assert await gate.scopes_for("segments", project_ids.project_id) == [project_ids.project_scope()]
    assert await gate.scopes_for("jobs", project_ids.project_id) == [
        project_ids.segment_scope(0),
        project_ids.segment_scope(1),
    ]

    pain_ref = str(uuid4())
    await seed_approved("pains-ranking", project_ids.segment_scope(1), [
        {"name": "Exam stress", "pain_id": pain_ref, "is_top_pain": True},
        {"name": "Rent", "is_top_pain": False},
    ])

    scopes = await gate.scopes_for("canvas", project_ids.project_id)
    assert [s.segment_id for s in scopes] == [project_ids.segment_ids[1]]
    assert str(scopes[0].pain_id) == pain_ref

    pain = await resolve_pain(db_session, scopes[0])
    assert pain["name"] == "Exam stress"
    assert await resolve_pain(db_session, Scope(
        project_id=project_ids.project_id,
        segment_id=project_ids.segment_ids[1],
        pain_id=uuid4(),
    )) is None
