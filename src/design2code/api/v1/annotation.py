# src/design2code/api/v1/annotation.py

from typing import List, Optional
from fastapi import APIRouter, Query
from design2code.core.context import AppContext
from design2code.api.dependencies.context import AppContextDep
from design2code.schemas.common import JsonResponse
from design2code.schemas.design.annotation_schemas import AnnotationSave, AnnotationRead, AnnotationChange
from design2code.services.design.annotation_service import AnnotationService

router = APIRouter()

@router.post("", response_model=JsonResponse[AnnotationRead], summary="Save Annotation Version")
async def save_annotation(
    design_uuid: str,
    data: AnnotationSave,
    context: AppContext = AppContextDep
):
    service = AnnotationService(context)
    return JsonResponse(data=await service.save_annotation(design_uuid, data))

@router.get("", response_model=JsonResponse[AnnotationRead], summary="Get Annotation")
async def get_annotation(
    design_uuid: str,
    version: Optional[int] = Query(None, ge=1),
    context: AppContext = AppContextDep
):
    """不指定 version 时返回当前 active 版本"""
    service = AnnotationService(context)
    return JsonResponse(data=await service.get_annotation(design_uuid, version))

@router.get("/diff", response_model=JsonResponse[List[AnnotationChange]], summary="Diff Annotation Versions")
async def diff_annotations(
    design_uuid: str,
    from_version: int = Query(..., ge=1),
    to_version: int = Query(..., ge=1),
    context: AppContext = AppContextDep
):
    service = AnnotationService(context)
    return JsonResponse(data=await service.diff_annotations(design_uuid, from_version, to_version))
