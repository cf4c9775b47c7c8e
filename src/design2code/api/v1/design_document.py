# src/design2code/api/v1/design_document.py

from typing import Optional
from fastapi import APIRouter, Query
from design2code.core.context import AppContext
from design2code.api.dependencies.context import AppContextDep
from design2code.models.design import DesignDocumentStatus
from design2code.schemas.common import JsonResponse, PageResult
from design2code.schemas.design.design_document_schemas import (
    DesignDocumentCreate, DesignDocumentUpdate, DesignDocumentRead, DesignDocumentDetail, DesignDslRead
)
from design2code.schemas.design.dsl_schemas import DslStats, ConvertedPath, PathConvertRequest
from design2code.services.design.design_document_service import DesignDocumentService
from design2code.services.design.path_asset_service import PathAssetService

router = APIRouter()

# ==============================================================================
# Path Asset Endpoints
# ==============================================================================

@router.post("/dsl/stats", response_model=JsonResponse[DslStats], summary="DSL Statistics")
async def get_dsl_stats(dsl: dict):
    return JsonResponse(data=PathAssetService.get_dsl_stats(dsl))

@router.post("/paths/convert", response_model=JsonResponse[ConvertedPath], summary="Convert Single Path")
async def convert_path(
    data: PathConvertRequest,
    context: AppContext = AppContextDep
):
    service = PathAssetService(context)
    converted = await service.convert_single_path(
        data.path_data, data.fill, width=data.width, height=data.height, styles=data.styles
    )
    return JsonResponse(data=converted)

# ==============================================================================
# Design Document Endpoints
# ==============================================================================

@router.post("", response_model=JsonResponse[DesignDocumentRead], summary="Create Design Document")
async def create_design_document(
    data: DesignDocumentCreate,
    context: AppContext = AppContextDep
):
    """从设计源链接拉取 DSL 并创建设计稿 (revision 1)"""
    service = DesignDocumentService(context)
    doc = await service.create_document(data)
    return JsonResponse(data=doc)

@router.get("", response_model=JsonResponse[PageResult[DesignDocumentRead]], summary="List Design Documents")
async def list_design_documents(
    status: Optional[DesignDocumentStatus] = Query(None),
    created_by: Optional[str] = Query(None),
    keyword: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    context: AppContext = AppContextDep
):
    service = DesignDocumentService(context)
    items, total = await service.paginate_documents(
        status=status, created_by=created_by, keyword=keyword, page=page, limit=limit
    )
    return JsonResponse(data=PageResult(
        items=[DesignDocumentRead.model_validate(item) for item in items],
        total=total, page=page, limit=limit
    ))

@router.get("/{design_uuid}", response_model=JsonResponse[DesignDocumentDetail], summary="Get Design Document")
async def get_design_document(
    design_uuid: str,
    context: AppContext = AppContextDep
):
    service = DesignDocumentService(context)
    doc = await service.get_document(design_uuid)
    return JsonResponse(data=doc)

@router.put("/{design_uuid}", response_model=JsonResponse[DesignDocumentRead], summary="Update Design Document")
async def update_design_document(
    design_uuid: str,
    data: DesignDocumentUpdate,
    context: AppContext = AppContextDep
):
    """携带 dsl_data 时修订号 +1; dsl_revision 不一致返回 409"""
    service = DesignDocumentService(context)
    doc = await service.update_document(design_uuid, data)
    return JsonResponse(data=doc)

@router.get("/{design_uuid}/dsl", response_model=JsonResponse[DesignDslRead], summary="Get Design DSL")
async def get_design_dsl(
    design_uuid: str,
    revision: Optional[int] = Query(None, ge=1),
    context: AppContext = AppContextDep
):
    service = DesignDocumentService(context)
    return JsonResponse(data=await service.get_design_dsl(design_uuid, revision))
