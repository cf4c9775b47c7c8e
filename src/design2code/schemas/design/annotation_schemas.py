# src/design2code/schemas/design/annotation_schemas.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any, List, Literal
from datetime import datetime
from design2code.models.design import AnnotationStatus

class AnnotationSave(BaseModel):
    version: Optional[int] = Field(None, ge=1, description="不传则自动分配 当前最高版本 + 1")
    root_annotation: Dict[str, Any] = Field(..., description="标注树根节点")
    expanded_keys: List[str] = Field(default_factory=list)
    schema_version: Optional[str] = None
    force: bool = Field(False, description="允许覆盖已存在的版本")

class AnnotationRead(BaseModel):
    version: int
    root_annotation: Dict[str, Any]
    expanded_keys: List[str]
    schema_version: Optional[str]
    status: AnnotationStatus
    created_by: str
    updated_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class AnnotationChange(BaseModel):
    nodeId: str
    changeType: Literal["added", "removed", "updated"]
    detail: Optional[Dict[str, Any]] = None
