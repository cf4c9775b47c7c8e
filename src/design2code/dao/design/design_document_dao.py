# src/design2code/dao/design/design_document_dao.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import or_
from typing import List, Optional, Tuple

from design2code.dao.base_dao import BaseDao
from design2code.models.design import DesignDocument, DesignDocumentStatus

class DesignDocumentDao(BaseDao[DesignDocument]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(DesignDocument, db_session)

    async def get_by_uuid(self, uuid: str) -> Optional[DesignDocument]:
        return await self.get_one(where={"uuid": uuid})

    async def update_if_revision(self, design_id: int, expected_revision: int, values: dict) -> bool:
        """
        乐观并发: 仅当存储中的 dsl_revision 仍等于 expected_revision 时写入。
        单条 UPDATE ... WHERE 完成比较与写入, 不存在读后写窗口。
        """
        affected = await self.update_where(
            [DesignDocument.id == design_id, DesignDocument.dsl_revision == expected_revision],
            values
        )
        return affected > 0

    async def paginate(
        self,
        status: Optional[DesignDocumentStatus] = None,
        created_by: Optional[str] = None,
        keyword: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[DesignDocument], int]:
        filters = []
        if status:
            filters.append(DesignDocument.status == status)
        else:
            filters.append(DesignDocument.status != DesignDocumentStatus.DELETED)
        if created_by:
            filters.append(DesignDocument.created_by == created_by)
        if keyword:
            pattern = f"%{keyword}%"
            filters.append(or_(DesignDocument.name.ilike(pattern), DesignDocument.description.ilike(pattern)))

        items = await self.get_list(
            where=filters,
            order=[DesignDocument.updated_at.desc(), DesignDocument.id.desc()],
            page=page,
            limit=limit
        )
        total = await self.count(where=filters)
        return items, total
