# src/design2code/api/v1/code_generation_task.py

from typing import List, Optional
from fastapi import APIRouter, Query
from design2code.core.context import AppContext
from design2code.api.dependencies.context import AppContextDep
from design2code.models.design import CodeGenerationTaskStatus
from design2code.schemas.common import JsonResponse, PageResult
from design2code.schemas.design.code_generation_task_schemas import (
    CodeGenerationTaskCreate, CodeGenerationTaskRead, CodeGenerationTaskLogRead, TaskDownloadRead
)
from design2code.services.design.code_generation_task_service import CodeGenerationTaskService

# 挂载在 /designs/{design_uuid}/code-tasks 下
design_router = APIRouter()
# 挂载在 /code-tasks 下
router = APIRouter()

@design_router.post("", response_model=JsonResponse[CodeGenerationTaskRead], summary="Submit Code Generation Task")
async def create_code_generation_task(
    design_uuid: str,
    data: CodeGenerationTaskCreate,
    context: AppContext = AppContextDep
):
    """创建任务并投递到队列, 立即返回 pending 状态的任务"""
    service = CodeGenerationTaskService(context)
    return JsonResponse(data=await service.create_task(design_uuid, data))

@design_router.get("", response_model=JsonResponse[PageResult[CodeGenerationTaskRead]], summary="List Code Generation Tasks")
async def list_code_generation_tasks(
    design_uuid: str,
    status: Optional[CodeGenerationTaskStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    context: AppContext = AppContextDep
):
    service = CodeGenerationTaskService(context)
    items, total = await service.paginate_tasks(design_uuid, status=status, page=page, limit=limit)
    return JsonResponse(data=PageResult(
        items=[CodeGenerationTaskRead.model_validate(item) for item in items],
        total=total, page=page, limit=limit
    ))

@router.get("/{task_uuid}", response_model=JsonResponse[CodeGenerationTaskRead], summary="Get Task")
async def get_code_generation_task(
    task_uuid: str,
    context: AppContext = AppContextDep
):
    service = CodeGenerationTaskService(context)
    return JsonResponse(data=await service.get_task(task_uuid))

@router.get("/{task_uuid}/logs", response_model=JsonResponse[List[CodeGenerationTaskLogRead]], summary="Get Task Logs")
async def get_code_generation_task_logs(
    task_uuid: str,
    limit: int = Query(50, ge=1, le=200),
    context: AppContext = AppContextDep
):
    service = CodeGenerationTaskService(context)
    return JsonResponse(data=await service.get_task_logs(task_uuid, limit=limit))

@router.post("/{task_uuid}/retry", response_model=JsonResponse[CodeGenerationTaskRead], summary="Retry Task")
async def retry_code_generation_task(
    task_uuid: str,
    context: AppContext = AppContextDep
):
    service = CodeGenerationTaskService(context)
    return JsonResponse(data=await service.retry_task(task_uuid))

@router.post("/{task_uuid}/cancel", response_model=JsonResponse[CodeGenerationTaskRead], summary="Cancel Task")
async def cancel_code_generation_task(
    task_uuid: str,
    context: AppContext = AppContextDep
):
    service = CodeGenerationTaskService(context)
    return JsonResponse(data=await service.cancel_task(task_uuid))

@router.get("/{task_uuid}/download", response_model=JsonResponse[TaskDownloadRead], summary="Get Artifact Download URL")
async def get_code_generation_task_download(
    task_uuid: str,
    context: AppContext = AppContextDep
):
    service = CodeGenerationTaskService(context)
    url = await service.get_download_url(task_uuid)
    return JsonResponse(data=TaskDownloadRead(download_url=url))
