import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import uuid4

from audience_api.audit.models import AuditEvent, AuditEventType
from audience_api.drafts.service import DraftStore
from audience_api.shared.exceptions import ConflictError, NotFoundError, StageLockedError, ValidationError


@pytest.mark.asyncio
async def test_list_is_ordered_and_scoped(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    await store.bulk_insert("triggers", project_ids.segment_scope(0), [
        {"signal": "Third", "ordinal": 2},
        {"signal": "First", "ordinal": 0},
        {"signal": "Second", "ordinal": 1},
    ])
    await store.bulk_insert("triggers", project_ids.segment_scope(1), [{"signal": "Other segment"}])

    rows = await store.list_drafts("triggers", project_ids.segment_scope(0))
    assert [r.payload["signal"] for r in rows] == ["First", "Second", "Third"]
    assert all(r.segment_id == project_ids.segment_ids[0] for r in rows)
    # The slot index lives on the row, not in the payload
    assert all("ordinal" not in r.payload for r in rows)

    # A project-level listing is exact too: no segment rows leak in
    assert await store.list_drafts("triggers", project_ids.project_scope()) == []


@pytest.mark.asyncio
async def test_patch_merges_one_key_and_keeps_version(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    [row] = await store.bulk_insert("triggers", project_ids.segment_scope(), [
        {"signal": "New school year", "description": "Kids go back", "messaging_angle": "Calm start"},
    ])
    row_id, version = row.id, row.version

    patched = await store.patch_draft("triggers", row_id, {"description": "September rush"})

    assert patched.payload == {
        "signal": "New school year",
        "description": "September rush",
        "messaging_angle": "Calm start",
    }
    assert patched.version == version

    result = await db_session.execute(
        select(AuditEvent).where(AuditEvent.event_type == AuditEventType.DRAFT_EDITED)
    )
    event = result.scalar_one()
    assert event.detail["fields"] == ["description"]


@pytest.mark.asyncio
async def test_patch_rejects_protected_keys(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    [row] = await store.bulk_insert("jobs", project_ids.segment_scope(), [{"job": "Cook"}])

    with pytest.raises(ValidationError):
        await store.patch_draft("jobs", row.id, {"segment_id": str(uuid4())})
    with pytest.raises(ValidationError):
        await store.patch_draft("jobs", row.id, {"version": 7})
    with pytest.raises(ValidationError):
        await store.patch_draft("jobs", row.id, {})


@pytest.mark.asyncio
async def test_patch_compare_and_swap(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    [row] = await store.bulk_insert("jobs", project_ids.segment_scope(), [{"job": "Cook"}])

    with pytest.raises(ConflictError):
        await store.patch_draft("jobs", row.id, {"job": "Bake"}, expected_version=row.version + 1)

    patched = await store.patch_draft("jobs", row.id, {"job": "Bake"}, expected_version=row.version)
    assert patched.payload["job"] == "Bake"


@pytest.mark.asyncio
async def test_patch_wrong_stage_is_not_found(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    [row] = await store.bulk_insert("jobs", project_ids.segment_scope(), [{"job": "Cook"}])

    with pytest.raises(NotFoundError):
        await store.patch_draft("preferences", row.id, {"name": "x"})
    with pytest.raises(NotFoundError):
        await store.get_draft("jobs", uuid4())


@pytest.mark.asyncio
async def test_delete_is_idempotent(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    [row] = await store.bulk_insert("jobs", project_ids.segment_scope(), [{"job": "Cook"}])
    row_id = row.id

    await store.delete_draft("jobs", row_id)
    await store.delete_draft("jobs", row_id)
    await store.delete_draft("jobs", uuid4())

    assert await store.list_drafts("jobs", project_ids.segment_scope()) == []
    result = await db_session.execute(
        select(AuditEvent).where(AuditEvent.event_type == AuditEventType.DRAFT_DELETED)
    )
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_replace_pass_supersedes_previous_drafts(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    scope = project_ids.segment_scope()
    first = await store.bulk_insert("pains", scope, [{"name": "A"}, {"name": "B"}, {"name": "C"}])
    assert {r.version for r in first} == {1}

    second = await store.bulk_insert("pains", scope, [{"name": "D"}])
    assert [r.version for r in second] == [2]

    rows = await store.list_drafts("pains", scope)
    assert [r.payload["name"] for r in rows] == ["D"]
    assert await store.latest_version("pains", scope) == 2


@pytest.mark.asyncio
async def test_augment_pass_upserts_by_ordinal(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    scope = project_ids.pain_scope(uuid4())
    await store.bulk_insert("canvas", scope, [
        {"pain_name": "Slot zero"},
        {"pain_name": "Slot one"},
    ])

    await store.bulk_insert("canvas", scope, [{"pain_name": "Slot one, again", "ordinal": 1}])

    rows = await store.list_drafts("canvas", scope)
    assert [(r.ordinal, r.payload["pain_name"], r.version) for r in rows] == [
        (0, "Slot zero", 1),
        (1, "Slot one, again", 2),
    ]


@pytest.mark.asyncio
async def test_bulk_insert_checks_scope_shape(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    with pytest.raises(ValidationError):
        await store.bulk_insert("jobs", project_ids.project_scope(), [{"job": "Cook"}])
    with pytest.raises(ValidationError):
        await store.bulk_insert("jobs", project_ids.segment_scope(), [])


@pytest.mark.asyncio
async def test_create_custom_draft(db_session: AsyncSession, project_ids, unlock_stage):
    store = DraftStore(db_session)
    scope = project_ids.segment_scope()
    await unlock_stage("preferences", scope)

    first = await store.create_draft("preferences", scope, {"name": "Local produce"})
    assert first.version == 1
    assert first.ordinal == 0

    await store.bulk_insert("preferences", scope, [{"name": "Generated"}])
    custom = await store.create_draft("preferences", scope, {"name": "Hand written"})
    assert custom.version == 2
    assert custom.ordinal == 1

    with pytest.raises(ValidationError):
        await store.create_draft("preferences", scope, {"description": "missing name"})


@pytest.mark.asyncio
async def test_create_draft_is_blocked_until_upstream_is_approved(db_session: AsyncSession, project_ids, unlock_stage):
    store = DraftStore(db_session)
    scope = project_ids.segment_scope()

    with pytest.raises(StageLockedError) as exc:
        await store.create_draft("jobs", scope, {"job": "Cook"})
    assert exc.value.detail["blocking_stage"] == "segments"
    assert await store.list_drafts("jobs", scope) == []

    await unlock_stage("jobs", scope)
    row = await store.create_draft("jobs", scope, {"job": "Cook"})
    assert row.payload == {"job": "Cook"}


@pytest.mark.asyncio
async def test_delete_version(db_session: AsyncSession, project_ids):
    store = DraftStore(db_session)
    scope = project_ids.pain_scope(uuid4())
    await store.bulk_insert("canvas", scope, [{"pain_name": "v1 slot 0"}, {"pain_name": "v1 slot 1"}])
    await store.bulk_insert("canvas", scope, [{"pain_name": "v2 slot 2", "ordinal": 2}])

    assert await store.delete_version("canvas", scope, 1) == 2
    assert await store.delete_version("canvas", scope, 1) == 0

    rows = await store.list_drafts("canvas", scope)
    assert [r.payload["pain_name"] for r in rows] == ["v2 slot 2"]
