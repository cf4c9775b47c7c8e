# src/design2code/schemas/design/requirement_document_schemas.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from design2code.models.design import RequirementDocumentStatus

class RequirementDocumentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = ""

class RequirementDocumentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    status: Optional[RequirementDocumentStatus] = None

class RequirementDocumentRead(BaseModel):
    uuid: str
    title: str
    content: str
    status: RequirementDocumentStatus
    object_key: Optional[str]
    export_formats: List[str]
    created_by: str
    updated_by: Optional[str]
    published_at: Optional[datetime]
    archived_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class RequirementDocumentExport(BaseModel):
    download_url: str
    object_key: str
