# src/design2code/schemas/design/design_document_schemas.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any, List
from datetime import datetime
from design2code.models.design import DesignDocumentStatus

# --- Create ---
class DesignDocumentCreate(BaseModel):
    """从设计源链接创建设计稿, DSL 由服务端拉取"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    source_url: str = Field(..., description="MasterGo 设计稿链接 (支持 /goto/ 短链)")
    tags: List[str] = Field(default_factory=list)
    meta: Optional[Dict[str, Any]] = None

# --- Update ---
class DesignDocumentUpdate(BaseModel):
    """
    dsl_data 出现即视为 DSL 变更 (修订号 +1); 其余字段为元数据更新。
    dsl_revision 为调用方最后读到的修订号, 不一致时返回 409。
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[DesignDocumentStatus] = None
    tags: Optional[List[str]] = None
    meta: Optional[Dict[str, Any]] = None
    dsl_data: Optional[Dict[str, Any]] = None
    dsl_revision: Optional[int] = Field(None, ge=1, description="Expected current revision")

# --- Read ---
class DesignDocumentRead(BaseModel):
    uuid: str
    name: str
    description: Optional[str]
    source_url: Optional[str]
    dsl_revision: int
    dsl_digest: Optional[str]
    status: DesignDocumentStatus
    tags: List[str]
    meta: Optional[Dict[str, Any]]
    created_by: str
    updated_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class DesignDocumentDetail(DesignDocumentRead):
    dsl_data: Optional[Dict[str, Any]] = None

class DesignDslRead(BaseModel):
    revision: int
    dsl: Optional[Dict[str, Any]]
