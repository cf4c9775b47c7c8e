# src/design2code/worker/tasks/code_generation.py

import logging
from arq.worker import Retry

from design2code.core.config import settings
from design2code.core.storage.factory import get_storage_provider
from design2code.models.design import CodeGenerationTaskStatus
from design2code.schemas.design.code_generation_task_schemas import TaskResult
from design2code.services.design.code_generation_task_service import CodeGenerationTaskService
from design2code.services.design.packaging import build_code_artifact, artifact_key
from design2code.services.exceptions import ConflictError
from ..context import build_worker_context

logger = logging.getLogger(__name__)

# 任务行可能在投递之后才提交, 找不到时延迟重投
MAX_DELIVERY_TRIES = 3
RETRY_DEFER_SECONDS = 2


async def _claim(ctx: dict, task_uuid: str) -> bool:
    """pending -> processing。已被处理或已取消的消息直接丢弃。"""
    db_session_factory = ctx['db_session_factory']
    async with db_session_factory() as session:
        async with session.begin():
            service = CodeGenerationTaskService(build_worker_context(ctx, session))
            task = await service.dao.get_by_uuid(task_uuid)
            if task is None:
                job_try = ctx.get('job_try', 1)
                if job_try >= MAX_DELIVERY_TRIES:
                    logger.error(f"[Worker] Task {task_uuid} not found after {job_try} tries, dropping job.")
                    return False
                raise Retry(defer=RETRY_DEFER_SECONDS * job_try)
            if task.status != CodeGenerationTaskStatus.PENDING:
                logger.info(f"[Worker] Task {task_uuid} is {task.status.value}, skipping duplicate delivery.")
                return False
            await service.mark_processing(task_uuid)
    return True


async def generate_code_task(ctx: dict, task_uuid: str):
    """
    ARQ 后台任务: 根据设计稿快照生成代码产物并上传。
    每个进度节点单独提交, 客户端轮询可以看到中间状态。
    """
    logger.info(f"[Worker] Received code generation task {task_uuid}.")
    if not await _claim(ctx, task_uuid):
        return

    db_session_factory = ctx['db_session_factory']
    async with db_session_factory() as session:
        service = CodeGenerationTaskService(build_worker_context(ctx, session), storage=get_storage_provider())
        try:
            snapshot = await service.load_task_context(task_uuid)
            task, design = snapshot["task"], snapshot["design"]
            annotation = snapshot["annotation"]
            requirement_doc = snapshot["requirement_doc"]
            await service.update_progress(task_uuid, 20, "Design snapshot loaded")
            await session.commit()

            artifact = build_code_artifact(
                design={"uuid": design.uuid, "name": design.name, "dsl_revision": design.dsl_revision},
                task_type=task.task_type,
                dsl=design.dsl_data,
                annotation=annotation.model_dump(mode="json") if annotation else None,
                requirement_markdown=requirement_doc.content if requirement_doc else None,
            )
            await service.update_progress(task_uuid, 60, f"Packaged {artifact.file_count} files")
            await session.commit()

            key = artifact_key(task_uuid)
            await service.storage.upload_object(key=key, data=artifact.data, content_type="application/zip")
            await service.update_progress(task_uuid, 90, "Artifact uploaded")

            result = TaskResult(
                artifact_key=key,
                file_count=artifact.file_count,
                total_size=artifact.total_size,
                metadata={
                    "design_uuid": design.uuid,
                    "dsl_revision": design.dsl_revision,
                    "annotation_version": annotation.version if annotation else None,
                    "template_version": settings.CODEGEN_TEMPLATE_VERSION,
                    "files": artifact.files,
                },
            )
            await service.complete_task(task_uuid, result)
            await session.commit()
            logger.info(f"[Worker] Task {task_uuid} completed, artifact {key} ({artifact.total_size} bytes).")

        except Exception as e:
            await session.rollback()
            logger.error(f"[Worker] Code generation task {task_uuid} failed: {e}", exc_info=True)
            try:
                await service.fail_task(task_uuid, e)
                await session.commit()
            except ConflictError as conflict:
                # 处理期间被取消: 保留 canceled 状态
                await session.rollback()
                logger.warning(f"[Worker] Task {task_uuid} could not be marked failed: {conflict}")
