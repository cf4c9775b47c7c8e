# tests/api/v1/test_task_api.py

import pytest
from httpx import AsyncClient
from fastapi import status

from design2code.models import DesignDocument
from factories import make_dsl

HEADERS = {"X-Operator-Id": "bob"}


@pytest.fixture
async def design_uuid(session_factory) -> str:
    async with session_factory() as session:
        async with session.begin():
            design = DesignDocument(name="Profile", dsl_data=make_dsl(), dsl_revision=1, tags=[], meta={}, created_by="bob")
            session.add(design)
            await session.flush()
            return design.uuid


async def test_task_lifecycle(client: AsyncClient, design_uuid, arq_pool_mock, mock_storage_provider):
    resp = await client.post(f"/api/v1/designs/{design_uuid}/code-tasks", json={"task_type": "react"}, headers=HEADERS)
    assert resp.status_code == status.HTTP_200_OK
    task = resp.json()["data"]
    assert task["status"] == "pending"
    assert task["progress"] == 0
    assert task["created_by"] == "bob"
    arq_pool_mock.enqueue_job.assert_awaited_once_with("generate_code_task", task["uuid"], _job_id=task["uuid"])

    resp = await client.get(f"/api/v1/code-tasks/{task['uuid']}/download")
    assert resp.status_code == status.HTTP_409_CONFLICT

    resp = await client.post(f"/api/v1/code-tasks/{task['uuid']}/retry")
    assert resp.status_code == status.HTTP_409_CONFLICT

    resp = await client.post(f"/api/v1/code-tasks/{task['uuid']}/cancel", headers=HEADERS)
    assert resp.json()["data"]["status"] == "canceled"

    resp = await client.post(f"/api/v1/code-tasks/{task['uuid']}/retry", headers=HEADERS)
    retried = resp.json()["data"]
    assert retried["status"] == "pending"
    assert retried["logs"] == []
    assert arq_pool_mock.enqueue_job.await_count == 2

    resp = await client.get(f"/api/v1/designs/{design_uuid}/code-tasks", params={"status": "pending"})
    assert resp.json()["data"]["total"] == 1

    resp = await client.get(f"/api/v1/code-tasks/{task['uuid']}/logs")
    assert resp.json()["data"] == []


async def test_retry_rolls_back_when_job_still_queued(client: AsyncClient, design_uuid, arq_pool_mock):
    resp = await client.post(f"/api/v1/designs/{design_uuid}/code-tasks", json={"task_type": "react"})
    task_uuid = resp.json()["data"]["uuid"]
    await client.post(f"/api/v1/code-tasks/{task_uuid}/cancel")

    arq_pool_mock.enqueue_job.return_value = None
    resp = await client.post(f"/api/v1/code-tasks/{task_uuid}/retry")
    assert resp.status_code == status.HTTP_409_CONFLICT

    resp = await client.get(f"/api/v1/code-tasks/{task_uuid}")
    task = resp.json()["data"]
    assert task["status"] == "canceled"
    assert task["logs"][-1].startswith("[WARN]")


async def test_task_validation_errors(client: AsyncClient, design_uuid):
    resp = await client.post(f"/api/v1/designs/{design_uuid}/code-tasks", json={"options": {}})
    assert resp.status_code == status.HTTP_400_BAD_REQUEST
    assert resp.json()["msg"] == "task_type is required."

    resp = await client.post("/api/v1/designs/unknown/code-tasks", json={"task_type": "react"})
    assert resp.status_code == status.HTTP_404_NOT_FOUND

    resp = await client.get("/api/v1/code-tasks/unknown")
    assert resp.status_code == status.HTTP_404_NOT_FOUND


async def test_requirement_document_endpoints(client: AsyncClient, design_uuid, mock_storage_provider):
    resp = await client.post(
        f"/api/v1/designs/{design_uuid}/requirement-docs", json={"title": "Requirements", "content": "# Profile"}, headers=HEADERS
    )
    doc = resp.json()["data"]
    assert doc["status"] == "draft"

    resp = await client.put(f"/api/v1/requirement-docs/{doc['uuid']}", json={"status": "published"})
    assert resp.json()["data"]["status"] == "published"

    resp = await client.put(f"/api/v1/requirement-docs/{doc['uuid']}", json={"status": "draft"})
    assert resp.status_code == status.HTTP_409_CONFLICT

    resp = await client.post(f"/api/v1/requirement-docs/{doc['uuid']}/export")
    exported = resp.json()["data"]
    assert exported["object_key"] == f"design/requirement-docs/{doc['uuid']}.md"

    resp = await client.get(f"/api/v1/designs/{design_uuid}/requirement-docs")
    page = resp.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["export_formats"] == ["md"]

    # 任务可以引用同一设计稿下的需求文档
    resp = await client.post(
        f"/api/v1/designs/{design_uuid}/code-tasks",
        json={"task_type": "react", "requirement_doc_uuid": doc["uuid"]},
    )
    assert resp.status_code == status.HTTP_200_OK
