# src/design2code/api/router.py

from fastapi import APIRouter
from design2code.api.v1 import design_document
from design2code.api.v1 import annotation
from design2code.api.v1 import requirement_document
from design2code.api.v1 import code_generation_task

# The main router for API v1
router = APIRouter(prefix="/api/v1")

# ===================================================================
# Design Documents & Annotations
# ===================================================================

router.include_router(design_document.router, prefix="/designs", tags=["Design Documents"])
router.include_router(
    annotation.router,
    prefix="/designs/{design_uuid}/annotations",
    tags=["Design Annotations"]
)

# ===================================================================
# Requirement Documents
# ===================================================================

router.include_router(
    requirement_document.design_router,
    prefix="/designs/{design_uuid}/requirement-docs",
    tags=["Requirement Documents"]
)
router.include_router(requirement_document.router, prefix="/requirement-docs", tags=["Requirement Documents"])

# ===================================================================
# Code Generation Tasks
# ===================================================================

router.include_router(
    code_generation_task.design_router,
    prefix="/designs/{design_uuid}/code-tasks",
    tags=["Code Generation"]
)
router.include_router(code_generation_task.router, prefix="/code-tasks", tags=["Code Generation"])
