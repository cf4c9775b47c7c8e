# tests/services/design/test_code_generation_task_service.py

import re
import pytest
from datetime import datetime

from design2code.core.context import AppContext
from design2code.models import CodeGenerationTaskStatus as Status, RequirementDocument, TaskLogLevel
from design2code.schemas.design.annotation_schemas import AnnotationSave
from design2code.schemas.design.code_generation_task_schemas import CodeGenerationTaskCreate
from design2code.services.design.annotation_service import AnnotationService
from design2code.services.design.code_generation_task_service import CodeGenerationTaskService, LogRing
from design2code.services.exceptions import ConflictError, NotFoundError, ValidationError
from factories import annotation_tree

RESULT = {"artifact_key": "x.zip", "file_count": 3, "total_size": 1024}


@pytest.fixture
def service(app_context, mock_storage_provider) -> CodeGenerationTaskService:
    return CodeGenerationTaskService(app_context)


@pytest.fixture
def task_factory(service, design_factory):
    async def _create(task_type: str = "react", **kwargs):
        design = kwargs.pop("design", None) or await design_factory()
        return await service.create_task(design.uuid, CodeGenerationTaskCreate(task_type=task_type, **kwargs))
    return _create


def assert_closure(task):
    """progress=100 只属于 completed; result 只属于 completed; error 只属于 failed"""
    if task.progress == 100 or task.result:
        assert task.status == Status.COMPLETED
    if task.error:
        assert task.status == Status.FAILED


# ==============================================================================
# LogRing
# ==============================================================================

def test_log_ring_keeps_latest_entries():
    ring = LogRing(capacity=3)
    for i in range(5):
        ring.append(TaskLogLevel.INFO, f"step {i}", at=datetime(2024, 5, 1, 8, 30, i))

    assert len(ring) == 3
    assert ring.to_list() == [
        "[INFO][2024-05-01 08:30:02] step 2",
        "[INFO][2024-05-01 08:30:03] step 3",
        "[INFO][2024-05-01 08:30:04] step 4",
    ]
    assert LogRing.format(TaskLogLevel.ERROR, "boom", at=datetime(2024, 1, 2)) == "[ERROR][2024-01-02 00:00:00] boom"


# ==============================================================================
# Submission
# ==============================================================================

async def test_create_task_is_pending_and_enqueued(service, design_factory, arq_pool_mock):
    design = await design_factory()

    task = await service.create_task(design.uuid, CodeGenerationTaskCreate(task_type=" react ", options={"ts": True}))

    assert task.status == Status.PENDING
    assert task.progress == 0
    assert task.task_type == "react"
    assert task.options == {"ts": True}
    assert task.created_by == "alice"
    assert len(task.logs) == 1
    assert re.match(r"^\[INFO\]\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] Task created", task.logs[0])
    arq_pool_mock.enqueue_job.assert_awaited_once_with("generate_code_task", task.uuid, _job_id=task.uuid)


async def test_create_task_validation(service, design_factory, db_session):
    design = await design_factory()
    other = await design_factory(name="Other")
    foreign_doc = RequirementDocument(design_id=other.id, title="Requirements", content="", created_by="bob")
    db_session.add(foreign_doc)
    await db_session.flush()

    with pytest.raises(NotFoundError):
        await service.create_task("missing", CodeGenerationTaskCreate(task_type="react"))
    with pytest.raises(ValidationError, match="task_type"):
        await service.create_task(design.uuid, CodeGenerationTaskCreate(task_type="  "))
    with pytest.raises(ValidationError, match="Requirement document"):
        await service.create_task(
            design.uuid, CodeGenerationTaskCreate(task_type="react", requirement_doc_uuid=foreign_doc.uuid)
        )


async def test_task_without_queue_stays_pending(db_session, redis_service, design_factory, mock_storage_provider):
    context = AppContext(db=db_session, redis_service=redis_service)
    design = await design_factory()

    task = await CodeGenerationTaskService(context).create_task(design.uuid, CodeGenerationTaskCreate(task_type="vue"))

    assert task.status == Status.PENDING
    assert task.created_by == "system"


# ==============================================================================
# Worker-facing state machine
# ==============================================================================

async def test_progress_then_complete(service, task_factory):
    task = await task_factory()

    await service.update_progress(task.uuid, 25)
    assert task.status == Status.PROCESSING
    assert task.progress == 25

    await service.complete_task(task.uuid, RESULT)

    final = await service.get_task(task.uuid)
    assert final.status == Status.COMPLETED
    assert final.progress == 100
    assert final.result["artifact_key"] == "x.zip"
    assert final.result["file_count"] == 3
    assert final.completed_at is not None
    assert final.logs[-1].endswith("Task completed")
    assert_closure(final)


async def test_progress_is_clamped_below_completion(service, task_factory):
    task = await task_factory()
    await service.mark_processing(task.uuid)

    await service.update_progress(task.uuid, 250, "almost")
    assert task.progress == 99
    await service.update_progress(task.uuid, -5)
    assert task.progress == 0
    assert_closure(task)


async def test_illegal_transitions_are_conflicts(service, task_factory):
    task = await task_factory()

    with pytest.raises(ConflictError):
        await service.complete_task(task.uuid, RESULT)
    with pytest.raises(ConflictError):
        await service.retry_task(task.uuid)

    await service.mark_processing(task.uuid)
    with pytest.raises(ConflictError):
        await service.mark_processing(task.uuid)
    with pytest.raises(ConflictError):
        await service.retry_task(task.uuid)

    await service.complete_task(task.uuid, RESULT)
    for attempt in (service.retry_task, service.cancel_task, service.mark_processing):
        with pytest.raises(ConflictError):
            await attempt(task.uuid)
    with pytest.raises(ConflictError):
        await service.update_progress(task.uuid, 10)
    with pytest.raises(ConflictError):
        await service.fail_task(task.uuid, "late failure")

    assert (await service.get_task(task.uuid)).status == Status.COMPLETED


async def test_fail_task_records_error(service, task_factory):
    task = await task_factory()
    await service.mark_processing(task.uuid)

    try:
        raise RuntimeError("template missing")
    except RuntimeError as e:
        await service.fail_task(task.uuid, e)

    assert task.status == Status.FAILED
    assert task.error["message"] == "template missing"
    assert "RuntimeError" in task.error["stack"]
    assert task.result is None
    assert task.logs[-1].startswith("[ERROR]")
    assert_closure(task)


async def test_retry_resets_cleanly(service, task_factory, arq_pool_mock):
    task = await task_factory()
    await service.mark_processing(task.uuid)
    await service.update_progress(task.uuid, 60, "halfway")
    await service.fail_task(task.uuid, "boom")
    arq_pool_mock.enqueue_job.reset_mock()

    retried = await service.retry_task(task.uuid)

    assert retried.status == Status.PENDING
    assert retried.progress == 0
    assert retried.logs == []
    assert retried.result is None
    assert retried.error is None
    assert retried.completed_at is None
    assert await service.get_task_logs(task.uuid) == []
    arq_pool_mock.enqueue_job.assert_awaited_once_with("generate_code_task", task.uuid, _job_id=task.uuid)


async def test_cancel_then_retry(service, task_factory):
    task = await task_factory()
    canceled = await service.cancel_task(task.uuid)
    assert canceled.status == Status.CANCELED
    assert canceled.logs[-1].startswith("[WARN]")

    assert (await service.retry_task(task.uuid)).status == Status.PENDING


async def test_retry_rejected_while_previous_job_still_queued(service, task_factory, arq_pool_mock):
    task = await task_factory()
    await service.mark_processing(task.uuid)
    await service.cancel_task(task.uuid)
    # worker 仍持有同 id 的 job, arq 拒绝再次投递
    arq_pool_mock.enqueue_job.return_value = None

    with pytest.raises(ConflictError, match="still in the queue"):
        await service.retry_task(task.uuid)


async def test_log_ring_is_bounded_but_audit_is_not(service, task_factory):
    task = await task_factory()
    await service.mark_processing(task.uuid)
    for i in range(30):
        await service.update_progress(task.uuid, i, f"step {i}")

    assert len(task.logs) == 20
    assert task.logs[-1].endswith("step 29")

    # 1 created + 1 started + 30 progress
    audit = await service.get_task_logs(task.uuid, limit=100)
    assert len(audit) == 32
    assert audit[0].message == "step 29"
    assert audit[-1].message.startswith("Task created")


# ==============================================================================
# Queries
# ==============================================================================

async def test_download_url_requires_completion(service, task_factory, mock_storage_provider):
    task = await task_factory()
    with pytest.raises(ConflictError):
        await service.get_download_url(task.uuid)

    await service.mark_processing(task.uuid)
    await service.complete_task(task.uuid, {**RESULT, "artifact_key": f"design/codegen/{task.uuid}.zip"})

    assert await service.get_download_url(task.uuid) == f"https://cdn.example.com/design/codegen/{task.uuid}.zip"


async def test_paginate_tasks_by_status(service, design_factory, task_factory):
    design = await design_factory()
    first = await task_factory(design=design)
    await task_factory(design=design)
    await service.cancel_task(first.uuid)

    items, total = await service.paginate_tasks(design.uuid)
    assert total == 2

    items, total = await service.paginate_tasks(design.uuid, status=Status.CANCELED, limit=500)
    assert total == 1
    assert items[0].uuid == first.uuid


async def test_load_task_context(service, app_context, design_factory, db_session):
    design = await design_factory()
    doc = RequirementDocument(design_id=design.id, title="Requirements", content="# Checkout", created_by="alice")
    db_session.add(doc)
    await db_session.flush()

    task = await service.create_task(
        design.uuid, CodeGenerationTaskCreate(task_type="react", requirement_doc_uuid=doc.uuid)
    )
    snapshot = await service.load_task_context(task.uuid)
    assert snapshot["design"].uuid == design.uuid
    assert snapshot["requirement_doc"].content == "# Checkout"
    assert snapshot["annotation"] is None

    await AnnotationService(app_context).save_annotation(design.uuid, AnnotationSave(root_annotation=annotation_tree()))
    snapshot = await service.load_task_context(task.uuid)
    assert snapshot["annotation"].version == 1
