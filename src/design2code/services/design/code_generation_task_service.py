# src/design2code/services/design/code_generation_task_service.py

import logging
import traceback
from collections import deque
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from design2code.core.config import settings
from design2code.core.context import AppContext
from design2code.core.storage.base import BaseStorageProvider
from design2code.core.storage.factory import get_storage_provider
from design2code.dao.design.code_generation_task_dao import CodeGenerationTaskDao, CodeGenerationTaskLogDao
from design2code.dao.design.design_document_dao import DesignDocumentDao
from design2code.dao.design.requirement_document_dao import RequirementDocumentDao
from design2code.db.base import utcnow
from design2code.models.design import (
    CodeGenerationTask, CodeGenerationTaskLog, CodeGenerationTaskStatus as Status, TaskLogLevel,
    DesignDocument, RequirementDocument
)
from design2code.schemas.design.annotation_schemas import AnnotationRead
from design2code.schemas.design.code_generation_task_schemas import CodeGenerationTaskCreate, TaskResult
from design2code.services.base_service import BaseService
from design2code.services.design.annotation_service import AnnotationService
from design2code.services.exceptions import NotFoundError, ConflictError, ValidationError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50
GENERATE_CODE_JOB = "generate_code_task"
# 只有 complete_task 能把进度推到 100
MAX_RUNNING_PROGRESS = 99

# 状态机: 目标状态 -> 允许的来源状态
ALLOWED_SOURCES: Dict[Status, Tuple[Status, ...]] = {
    Status.PROCESSING: (Status.PENDING,),
    Status.COMPLETED: (Status.PROCESSING,),
    Status.FAILED: (Status.PENDING, Status.PROCESSING),
    Status.CANCELED: (Status.PENDING, Status.PROCESSING),
    Status.PENDING: (Status.FAILED, Status.CANCELED),
}


class LogRing:
    """
    固定容量的任务日志环形缓冲, 超出容量时丢弃最旧的条目。
    条目格式: [LEVEL][YYYY-MM-DD HH:MM:SS] message
    """
    def __init__(self, entries: Optional[Iterable[str]] = None, capacity: int = settings.CODEGEN_TASK_LOG_LIMIT):
        self._entries = deque(entries or [], maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def format(level: TaskLogLevel, message: str, at: Optional[datetime] = None) -> str:
        timestamp = (at or utcnow()).strftime("%Y-%m-%d %H:%M:%S")
        return f"[{level.value.upper()}][{timestamp}] {message}"

    def append(self, level: TaskLogLevel, message: str, at: Optional[datetime] = None) -> str:
        entry = self.format(level, message, at)
        self._entries.append(entry)
        return entry

    def to_list(self) -> List[str]:
        return list(self._entries)


class CodeGenerationTaskService(BaseService):
    """
    [Service Layer] 代码生成任务的生命周期。
    pending -> processing -> completed | failed, failed/canceled 可重试回到 pending。
    所有状态迁移都是带来源状态条件的单条 UPDATE, 非法迁移抛出 ConflictError。
    队列消息只携带任务 uuid, worker 每次都从数据库重新加载任务。
    """

    def __init__(self, context: AppContext, storage: Optional[BaseStorageProvider] = None):
        super().__init__(context)
        self.dao = CodeGenerationTaskDao(context.db)
        self.log_dao = CodeGenerationTaskLogDao(context.db)
        self.design_dao = DesignDocumentDao(context.db)
        self.requirement_dao = RequirementDocumentDao(context.db)
        self._storage = storage

    @property
    def storage(self) -> BaseStorageProvider:
        if self._storage is None:
            self._storage = get_storage_provider()
        return self._storage

    # ==========================================================================
    # 1. Queries
    # ==========================================================================

    async def get_task(self, task_uuid: str) -> CodeGenerationTask:
        task = await self.dao.get_by_uuid(task_uuid)
        if not task:
            raise NotFoundError("Task not found.")
        return task

    async def paginate_tasks(
        self,
        design_uuid: str,
        status: Optional[Status] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[CodeGenerationTask], int]:
        design = await self._get_design(design_uuid)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        return await self.dao.paginate(design.id, status=status, page=max(page, 1), limit=limit)

    async def get_task_logs(self, task_uuid: str, limit: int = 50) -> List[CodeGenerationTaskLog]:
        task = await self.get_task(task_uuid)
        return await self.log_dao.list_recent(task.id, limit=limit)

    async def get_download_url(self, task_uuid: str) -> str:
        task = await self.get_task(task_uuid)
        artifact_key = (task.result or {}).get("artifact_key")
        if task.status != Status.COMPLETED or not artifact_key:
            raise ConflictError("Task has not completed, no artifact available.")
        return self.storage.get_public_url(artifact_key)

    async def load_task_context(self, task_uuid: str) -> Dict[str, Any]:
        """
        worker 生成产物所需的快照: {task, design, requirement_doc, annotation}。
        设计稿不存在时抛出 NotFoundError, 由 worker 转为任务失败。
        """
        task = await self.get_task(task_uuid)
        design = await self.design_dao.get_by_pk(task.design_id)
        if not design:
            raise NotFoundError("Design document not found.")

        requirement_doc = None
        if task.requirement_document_id:
            requirement_doc = await self.requirement_dao.get_by_pk(task.requirement_document_id)

        annotation: Optional[AnnotationRead] = None
        try:
            annotation = await AnnotationService(self.context).get_annotation(design.uuid)
        except NotFoundError:
            logger.info(f"Design {design.uuid} has no annotation yet, generating without it")

        return {
            "task": task,
            "design": design,
            "requirement_doc": requirement_doc,
            "annotation": annotation,
        }

    async def _get_design(self, design_uuid: str) -> DesignDocument:
        design = await self.design_dao.get_by_uuid(design_uuid)
        if not design:
            raise NotFoundError("Design document not found.")
        return design

    # ==========================================================================
    # 2. Submission & retry
    # ==========================================================================

    async def create_task(self, design_uuid: str, params: CodeGenerationTaskCreate) -> CodeGenerationTask:
        design = await self._get_design(design_uuid)

        if not params.task_type or not params.task_type.strip():
            raise ValidationError("task_type is required.")

        requirement_doc: Optional[RequirementDocument] = None
        if params.requirement_doc_uuid:
            requirement_doc = await self.requirement_dao.get_by_uuid(params.requirement_doc_uuid)
            if not requirement_doc or requirement_doc.design_id != design.id:
                raise ValidationError("Requirement document not found or does not belong to this design.")

        task = CodeGenerationTask(
            design_id=design.id,
            requirement_document_id=requirement_doc.id if requirement_doc else None,
            task_type=params.task_type.strip(),
            options=dict(params.options),
            status=Status.PENDING,
            progress=0,
            logs=[],
            created_by=self.context.actor,
            updated_by=self.context.actor,
        )
        task = await self.dao.add(task)
        await self.append_log(task, "Task created, waiting for scheduling")
        await self._enqueue(task.uuid)
        return task

    async def retry_task(self, task_uuid: str) -> CodeGenerationTask:
        task = await self.get_task(task_uuid)
        await self._transition(
            task, Status.PENDING,
            {
                "progress": 0,
                "result": None,
                "error": None,
                "completed_at": None,
                "updated_by": self.context.actor,
            },
            reset_logs=True
        )
        await self.log_dao.delete_for_task(task.id)
        logger.info(f"Task {task.uuid} reset by {self.context.actor}")
        await self._enqueue(task.uuid)
        return task

    async def cancel_task(self, task_uuid: str) -> CodeGenerationTask:
        task = await self.get_task(task_uuid)
        await self._transition(
            task, Status.CANCELED, {"updated_by": self.context.actor},
            message="Task canceled", level=TaskLogLevel.WARN
        )
        return task

    async def _enqueue(self, task_uuid: str):
        if not self.context.arq_pool:
            logger.warning(f"No task queue configured, task {task_uuid} stays pending")
            return
        job = await self.context.arq_pool.enqueue_job(GENERATE_CODE_JOB, task_uuid, _job_id=task_uuid)
        if job is None:
            # 同 id 的旧 job 仍在队列或执行中, arq 拒绝投递; 抛出以回滚本次状态变更
            logger.warning(f"Job {task_uuid} is still queued or running, enqueue rejected")
            raise ConflictError("A previous run of this task is still in the queue, please retry later.")
        logger.info(f"Enqueued code generation task {task_uuid}")

    # ==========================================================================
    # 3. Worker-facing state machine
    # ==========================================================================

    async def mark_processing(self, task_uuid: str, message: Optional[str] = "Task started") -> CodeGenerationTask:
        task = await self.get_task(task_uuid)
        await self._transition(task, Status.PROCESSING, {"progress": 5}, message=message)
        return task

    async def update_progress(self, task_uuid: str, progress: int, message: Optional[str] = None) -> CodeGenerationTask:
        """
        进度上报隐含任务已在执行: pending 的任务会被推进到 processing。
        终态任务上报进度视为非法迁移。
        """
        task = await self.get_task(task_uuid)
        clamped = min(max(int(progress), 0), 100)
        values = {"progress": min(clamped, MAX_RUNNING_PROGRESS), "status": Status.PROCESSING}
        await self._apply(task, (Status.PENDING, Status.PROCESSING), values, message=message)
        return task

    async def complete_task(self, task_uuid: str, result: TaskResult | Dict[str, Any]) -> CodeGenerationTask:
        task = await self.get_task(task_uuid)
        payload = TaskResult.model_validate(result).model_dump(mode="json")
        await self._transition(
            task, Status.COMPLETED,
            {"progress": 100, "result": payload, "error": None, "completed_at": utcnow()},
            message="Task completed"
        )
        return task

    async def fail_task(self, task_uuid: str, error: BaseException | str) -> CodeGenerationTask:
        task = await self.get_task(task_uuid)
        if isinstance(error, BaseException):
            message = str(error) or error.__class__.__name__
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        else:
            message, stack = error, None
        await self._transition(
            task, Status.FAILED,
            {"error": {"message": message, "stack": stack}, "result": None},
            message=message, level=TaskLogLevel.ERROR
        )
        return task

    async def _transition(
        self,
        task: CodeGenerationTask,
        target: Status,
        values: Dict[str, Any],
        message: Optional[str] = None,
        level: TaskLogLevel = TaskLogLevel.INFO,
        reset_logs: bool = False
    ):
        values = {**values, "status": target}
        await self._apply(task, ALLOWED_SOURCES[target], values, message, level, reset_logs)
        logger.info(f"Task {task.uuid} -> {target.value}")

    async def _apply(
        self,
        task: CodeGenerationTask,
        sources: Tuple[Status, ...],
        values: Dict[str, Any],
        message: Optional[str] = None,
        level: TaskLogLevel = TaskLogLevel.INFO,
        reset_logs: bool = False
    ):
        """带来源状态条件的写入; 日志环与状态在同一条 UPDATE 中更新。"""
        ring = LogRing([] if reset_logs else task.logs)
        if message:
            ring.append(level, message)
        if message or reset_logs:
            values = {**values, "logs": ring.to_list()}

        if not await self.dao.transition(task.id, sources, values):
            current = task.status.value if task.status else "unknown"
            raise ConflictError(
                f"Illegal task transition from '{current}' "
                f"(allowed from: {', '.join(s.value for s in sources)})."
            )
        await self.db.refresh(task)

        if message:
            await self._audit(task, level, message)

    async def append_log(self, task: CodeGenerationTask, message: str, level: TaskLogLevel = TaskLogLevel.INFO):
        """追加日志而不改变状态: 写入环形缓冲与审计表"""
        ring = LogRing(task.logs)
        ring.append(level, message)
        task.logs = ring.to_list()
        await self._audit(task, level, message)

    async def _audit(self, task: CodeGenerationTask, level: TaskLogLevel, message: str):
        self.db.add(CodeGenerationTaskLog(task_id=task.id, level=level, message=message, context={}))
        await self.db.flush()
