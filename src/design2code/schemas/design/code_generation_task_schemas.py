# src/design2code/schemas/design/code_generation_task_schemas.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any, List
from datetime import datetime
from design2code.models.design import CodeGenerationTaskStatus, TaskLogLevel

class CodeGenerationTaskCreate(BaseModel):
    # 不在 schema 层强制 task_type, 由服务层给出 ValidationError
    task_type: Optional[str] = Field(None, max_length=64)
    requirement_doc_uuid: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)

class TaskResult(BaseModel):
    artifact_key: str
    file_count: int = Field(..., ge=0)
    total_size: int = Field(..., ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

class TaskError(BaseModel):
    message: str
    stack: Optional[str] = None

class CodeGenerationTaskRead(BaseModel):
    uuid: str
    task_type: str
    options: Dict[str, Any]
    status: CodeGenerationTaskStatus
    progress: int
    logs: List[str]
    result: Optional[Dict[str, Any]]
    error: Optional[Dict[str, Any]]
    created_by: str
    updated_by: Optional[str]
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CodeGenerationTaskLogRead(BaseModel):
    level: TaskLogLevel
    message: str
    context: Optional[Dict[str, Any]]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class TaskDownloadRead(BaseModel):
    download_url: str
