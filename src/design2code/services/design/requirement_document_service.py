# src/design2code/services/design/requirement_document_service.py

import logging
from typing import List, Optional, Tuple

from design2code.core.context import AppContext
from design2code.core.storage.base import BaseStorageProvider
from design2code.core.storage.factory import get_storage_provider
from design2code.dao.design.design_document_dao import DesignDocumentDao
from design2code.dao.design.requirement_document_dao import RequirementDocumentDao
from design2code.db.base import utcnow
from design2code.models.design import RequirementDocument, RequirementDocumentStatus as DocStatus
from design2code.schemas.design.requirement_document_schemas import (
    RequirementDocumentCreate, RequirementDocumentUpdate, RequirementDocumentExport
)
from design2code.services.base_service import BaseService
from design2code.services.exceptions import NotFoundError, ConflictError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50

STATUS_TRANSITIONS = {
    DocStatus.DRAFT: (DocStatus.PUBLISHED, DocStatus.ARCHIVED),
    DocStatus.PUBLISHED: (DocStatus.ARCHIVED,),
    DocStatus.ARCHIVED: (),
}


def requirement_doc_key(doc_uuid: str) -> str:
    return f"design/requirement-docs/{doc_uuid}.md"


class RequirementDocumentService(BaseService):
    """需求规格文档: Markdown 正文、发布状态与导出"""

    def __init__(self, context: AppContext, storage: Optional[BaseStorageProvider] = None):
        super().__init__(context)
        self.dao = RequirementDocumentDao(context.db)
        self.design_dao = DesignDocumentDao(context.db)
        self._storage = storage

    @property
    def storage(self) -> BaseStorageProvider:
        if self._storage is None:
            self._storage = get_storage_provider()
        return self._storage

    async def get_document(self, doc_uuid: str) -> RequirementDocument:
        doc = await self.dao.get_by_uuid(doc_uuid)
        if not doc:
            raise NotFoundError("Requirement document not found.")
        return doc

    async def create_document(self, design_uuid: str, params: RequirementDocumentCreate) -> RequirementDocument:
        design = await self.design_dao.get_by_uuid(design_uuid)
        if not design:
            raise NotFoundError("Design document not found.")

        doc = RequirementDocument(
            design_id=design.id,
            title=params.title,
            content=params.content,
            status=DocStatus.DRAFT,
            export_formats=[],
            created_by=self.context.actor,
            updated_by=self.context.actor,
        )
        return await self.dao.add(doc)

    async def paginate_documents(
        self,
        design_uuid: str,
        status: Optional[DocStatus] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[RequirementDocument], int]:
        design = await self.design_dao.get_by_uuid(design_uuid)
        if not design:
            raise NotFoundError("Design document not found.")
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        return await self.dao.paginate(design_id=design.id, status=status, page=max(page, 1), limit=limit)

    async def update_document(self, doc_uuid: str, params: RequirementDocumentUpdate) -> RequirementDocument:
        doc = await self.get_document(doc_uuid)

        if params.title is not None:
            doc.title = params.title
        if params.content is not None:
            doc.content = params.content
        if params.status is not None and params.status != doc.status:
            if params.status not in STATUS_TRANSITIONS[doc.status]:
                raise ConflictError(
                    f"Invalid status transition from {doc.status.value} to {params.status.value}."
                )
            doc.status = params.status
            if params.status == DocStatus.PUBLISHED:
                doc.published_at = utcnow()
            elif params.status == DocStatus.ARCHIVED:
                doc.archived_at = utcnow()

        doc.updated_by = self.context.actor
        await self.db.flush()
        await self.db.refresh(doc)
        return doc

    async def export_document(self, doc_uuid: str) -> RequirementDocumentExport:
        doc = await self.get_document(doc_uuid)
        key = requirement_doc_key(doc.uuid)
        url = await self.storage.upload_object(
            key=key,
            data=(doc.content or "").encode("utf-8"),
            content_type="text/markdown; charset=utf-8"
        )

        doc.object_key = key
        doc.export_formats = sorted(set(doc.export_formats or []) | {"md"})
        doc.updated_by = self.context.actor
        await self.db.flush()
        logger.info(f"Requirement document {doc.uuid} exported to {key}")
        return RequirementDocumentExport(download_url=url, object_key=key)
