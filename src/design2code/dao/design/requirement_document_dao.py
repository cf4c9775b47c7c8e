# src/design2code/dao/design/requirement_document_dao.py

from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Tuple

from design2code.dao.base_dao import BaseDao
from design2code.models.design import RequirementDocument, RequirementDocumentStatus

class RequirementDocumentDao(BaseDao[RequirementDocument]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(RequirementDocument, db_session)

    async def get_by_uuid(self, uuid: str) -> Optional[RequirementDocument]:
        return await self.get_one(where={"uuid": uuid})

    async def paginate(
        self,
        design_id: Optional[int] = None,
        status: Optional[RequirementDocumentStatus] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[RequirementDocument], int]:
        filters = []
        if design_id is not None:
            filters.append(RequirementDocument.design_id == design_id)
        if status:
            filters.append(RequirementDocument.status == status)
        items = await self.get_list(
            where=filters,
            order=[RequirementDocument.updated_at.desc(), RequirementDocument.id.desc()],
            page=page,
            limit=limit
        )
        total = await self.count(where=filters)
        return items, total
