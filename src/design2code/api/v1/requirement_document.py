# src/design2code/api/v1/requirement_document.py

from typing import Optional
from fastapi import APIRouter, Query
from design2code.core.context import AppContext
from design2code.api.dependencies.context import AppContextDep
from design2code.models.design import RequirementDocumentStatus
from design2code.schemas.common import JsonResponse, PageResult
from design2code.schemas.design.requirement_document_schemas import (
    RequirementDocumentCreate, RequirementDocumentUpdate, RequirementDocumentRead, RequirementDocumentExport
)
from design2code.services.design.requirement_document_service import RequirementDocumentService

# 挂载在 /designs/{design_uuid}/requirement-docs 下
design_router = APIRouter()
# 挂载在 /requirement-docs 下
router = APIRouter()

@design_router.post("", response_model=JsonResponse[RequirementDocumentRead], summary="Create Requirement Document")
async def create_requirement_document(
    design_uuid: str,
    data: RequirementDocumentCreate,
    context: AppContext = AppContextDep
):
    service = RequirementDocumentService(context)
    return JsonResponse(data=await service.create_document(design_uuid, data))

@design_router.get("", response_model=JsonResponse[PageResult[RequirementDocumentRead]], summary="List Requirement Documents")
async def list_requirement_documents(
    design_uuid: str,
    status: Optional[RequirementDocumentStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    context: AppContext = AppContextDep
):
    service = RequirementDocumentService(context)
    items, total = await service.paginate_documents(design_uuid, status=status, page=page, limit=limit)
    return JsonResponse(data=PageResult(
        items=[RequirementDocumentRead.model_validate(item) for item in items],
        total=total, page=page, limit=limit
    ))

@router.get("/{doc_uuid}", response_model=JsonResponse[RequirementDocumentRead], summary="Get Requirement Document")
async def get_requirement_document(
    doc_uuid: str,
    context: AppContext = AppContextDep
):
    service = RequirementDocumentService(context)
    return JsonResponse(data=await service.get_document(doc_uuid))

@router.put("/{doc_uuid}", response_model=JsonResponse[RequirementDocumentRead], summary="Update Requirement Document")
async def update_requirement_document(
    doc_uuid: str,
    data: RequirementDocumentUpdate,
    context: AppContext = AppContextDep
):
    service = RequirementDocumentService(context)
    return JsonResponse(data=await service.update_document(doc_uuid, data))

@router.post("/{doc_uuid}/export", response_model=JsonResponse[RequirementDocumentExport], summary="Export Requirement Document")
async def export_requirement_document(
    doc_uuid: str,
    context: AppContext = AppContextDep
):
    service = RequirementDocumentService(context)
    return JsonResponse(data=await service.export_document(doc_uuid))
