from uuid import UUID

import pytest
from httpx import AsyncClient

from audience_api.drafts.service import DraftStore
from audience_api.registry import Scope

API = "/v1/projects"


async def create_project(client: AsyncClient, **overrides) -> dict:
    body = {
        "name": "Meal kit",
        "brand_description": "Weeknight dinners made easy",
        "product_description": "Pre-portioned meal kits",
        **overrides,
    }
    response = await client.post(API, json=body)
    assert response.status_code == 201, response.text
    return response.json()


async def add_segments(client: AsyncClient, project_id: str) -> list:
    segments = []
    for name in ("Parents", "Students"):
        response = await client.post(f"{API}/{project_id}/segments", json={"name": name})
        assert response.status_code == 201, response.text
        segments.append(response.json())
    return segments


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_list_stages(async_client: AsyncClient):
    response = await async_client.get("/v1/stages")
    assert response.status_code == 200
    ids = [s["id"] for s in response.json()]
    assert ids[0] == "segments"
    assert ids.index("pains") < ids.index("pains-ranking") < ids.index("canvas")

    assert (await async_client.get("/v1/stages/unknown")).status_code == 404


@pytest.mark.asyncio
async def test_project_and_segments(async_client: AsyncClient):
    project = await create_project(async_client)
    assert project["native_language"] == "en"
    assert project["current_stage"] is None

    segments = await add_segments(async_client, project["id"])
    assert [s["order_index"] for s in segments] == [0, 1]

    response = await async_client.get(f"{API}/{project['id']}/segments")
    assert [s["name"] for s in response.json()] == ["Parents", "Students"]

    response = await async_client.post(API, json={"name": "Bad", "native_language": "xx"})
    assert response.status_code == 400

    missing = "00000000-0000-0000-0000-000000000000"
    assert (await async_client.get(f"{API}/{missing}")).status_code == 404


@pytest.mark.asyncio
async def test_generate_approve_and_unlock(async_client: AsyncClient):
    project = await create_project(async_client)
    project_id = project["id"]
    parents, students = await add_segments(async_client, project_id)

    response = await async_client.post(
        f"{API}/{project_id}/stages/jobs/generate", params={"segment_id": parents["id"]}
    )
    assert response.status_code == 409
    assert response.json()["detail"]["blocking_stage"] == "segments"

    response = await async_client.post(
        f"{API}/{project_id}/stages/segments/generate", json={"instructions": "Families first"}
    )
    assert response.status_code == 200
    drafts = response.json()["drafts"]
    assert [d["label"] for d in drafts] == ["Busy parents", "Remote students"]

    response = await async_client.post(
        f"{API}/{project_id}/stages/segments/approve", json={"row_ids": [d["id"] for d in drafts]}
    )
    assert response.status_code == 200
    assert len(response.json()["records"]) == 2

    response = await async_client.get(f"{API}/{project_id}/stages/segments/approval")
    assert response.json()["approved"] is True
    assert (await async_client.get(f"{API}/{project_id}")).json()["current_stage"] == "jobs"

    response = await async_client.get(
        f"{API}/{project_id}/stages/jobs/gate", params={"segment_id": students["id"]}
    )
    assert response.json()["allowed"] is True

    response = await async_client.post(f"{API}/{project_id}/stages/jobs/generate-all")
    assert [o["status"] for o in response.json()] == ["generated", "generated"]

    response = await async_client.get(f"{API}/{project_id}/progress")
    progress = response.json()
    assert progress[0]["completed_stages"] == ["segments"]
    assert progress[0]["current_stage"] == "jobs"


@pytest.mark.asyncio
async def test_approve_errors(async_client: AsyncClient):
    project = await create_project(async_client)
    project_id = project["id"]
    parents, _ = await add_segments(async_client, project_id)

    response = await async_client.post(f"{API}/{project_id}/stages/segments/approve", json={"row_ids": []})
    assert response.status_code == 400

    missing = "00000000-0000-0000-0000-000000000001"
    response = await async_client.post(f"{API}/{project_id}/stages/segments/approve", json={"row_ids": [missing]})
    assert response.status_code == 404
    assert response.json()["detail"]["missing"] == [missing]

    response = await async_client.post(
        f"{API}/{project_id}/stages/segments/approve",
        params={"segment_id": parents["id"]},
        json={"row_ids": [missing]},
    )
    assert response.status_code == 400

    response = await async_client.get(
        f"{API}/{project_id}/stages/canvas/drafts", params={"pain_id": missing}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_locked_stage_rejects_drafts_and_approval(async_client: AsyncClient, db_session):
    project = await create_project(async_client)
    project_id = project["id"]
    parents, _ = await add_segments(async_client, project_id)
    params = {"segment_id": parents["id"]}

    response = await async_client.post(
        f"{API}/{project_id}/stages/jobs/drafts", params=params, json={"payload": {"job": "Cook"}}
    )
    assert response.status_code == 409
    assert response.json()["detail"]["blocking_stage"] == "segments"

    scope = Scope(project_id=UUID(project_id), segment_id=UUID(parents["id"]))
    rows = await DraftStore(db_session).bulk_insert("jobs", scope, [{"job": "Cook"}])
    response = await async_client.post(
        f"{API}/{project_id}/stages/jobs/approve", params=params, json={"row_ids": [str(rows[0].id)]}
    )
    assert response.status_code == 409
    assert response.json()["detail"]["blocking_stage"] == "segments"

    response = await async_client.get(f"{API}/{project_id}/stages/jobs/approval", params=params)
    assert response.json()["approved"] is False


@pytest.mark.asyncio
async def test_draft_editing(async_client: AsyncClient):
    project = await create_project(async_client)
    project_id = project["id"]
    base = f"{API}/{project_id}/stages/segments/drafts"

    response = await async_client.post(f"{API}/{project_id}/stages/segments/generate")
    row = response.json()["drafts"][0]

    response = await async_client.patch(f"{base}/{row['id']}", json={"fields": {"description": "Two kids"}})
    assert response.status_code == 200
    assert response.json()["payload"] == {"name": "Busy parents", "description": "Two kids"}
    assert response.json()["version"] == row["version"]

    response = await async_client.patch(
        f"{base}/{row['id']}", json={"fields": {"name": "X"}, "expected_version": row["version"] + 1}
    )
    assert response.status_code == 409
    assert response.json()["detail"]["current_version"] == row["version"]

    response = await async_client.patch(f"{base}/{row['id']}", json={"fields": {"id": "other"}})
    assert response.status_code == 400

    response = await async_client.post(base, json={"payload": {"name": "Retirees"}})
    assert response.status_code == 201
    assert response.json()["ordinal"] == 2

    response = await async_client.post(base, json={"payload": {"description": "no name"}})
    assert response.status_code == 400

    assert (await async_client.delete(f"{base}/{row['id']}")).status_code == 204
    assert (await async_client.delete(f"{base}/{row['id']}")).status_code == 204

    response = await async_client.get(base)
    assert [d["label"] for d in response.json()] == ["Remote students", "Retirees"]

    response = await async_client.delete(f"{base}/versions/1")
    assert response.json() == {"version": 1, "deleted": 2}


@pytest.mark.asyncio
async def test_field_regeneration_endpoint(async_client: AsyncClient, fake_generator):
    project = await create_project(async_client)
    project_id = project["id"]
    response = await async_client.post(f"{API}/{project_id}/stages/segments/generate")
    row = response.json()["drafts"][0]

    fake_generator.field_value = "Parents juggling work and school runs"
    response = await async_client.post(
        f"{API}/{project_id}/stages/segments/drafts/{row['id']}/fields/description/regenerate",
        json={"context": "Mention school runs"},
    )
    assert response.status_code == 200
    assert response.json()["draft"]["payload"]["description"] == "Parents juggling work and school runs"

    fake_generator.fail = RuntimeError("model offline")
    response = await async_client.post(
        f"{API}/{project_id}/stages/segments/drafts/{row['id']}/fields/name/regenerate"
    )
    assert response.status_code == 502


@pytest.mark.asyncio
async def test_translate_endpoint(async_client: AsyncClient, fake_translator):
    project = await create_project(async_client)
    url = f"{API}/{project['id']}/translate"
    content = {"title": "Weeknight plan", "segments": [{"name": "Parents"}], "pains": [{"name": "Chaos"}]}

    response = await async_client.post(url, json={"content": content, "target_language": "en"})
    assert response.status_code == 200
    assert response.json()["result"] is None

    response = await async_client.post(url, json={"content": content, "target_language": "de", "keys": ["pains"]})
    result = response.json()["result"]
    assert result["content"]["pains"] == [{"name": "[de] Chaos"}]
    assert result["content"]["segments"] == [{"name": "Parents"}]

    response = await async_client.post(url, json={"content": content, "target_language": "de", "keys": ["pains"]})
    assert response.json()["result"]["cached"] is True
    assert len(fake_translator.calls) == 1

    response = await async_client.post(url, json={"content": content, "target_language": "xx"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_audit_log(async_client: AsyncClient):
    project = await create_project(async_client)
    project_id = project["id"]
    response = await async_client.post(f"{API}/{project_id}/stages/segments/generate")
    drafts = response.json()["drafts"]
    await async_client.post(f"{API}/{project_id}/stages/segments/approve", json={"row_ids": [drafts[0]["id"]]})

    response = await async_client.get(f"{API}/{project_id}/audit")
    assert response.status_code == 200
    types = {e["event_type"] for e in response.json()}
    assert types == {"DRAFTS_GENERATED", "STAGE_APPROVED"}
