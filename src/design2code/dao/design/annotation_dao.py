# src/design2code/dao/design/annotation_dao.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional

from design2code.dao.base_dao import BaseDao
from design2code.models.design import ComponentAnnotation, AnnotationStatus

class ComponentAnnotationDao(BaseDao[ComponentAnnotation]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(ComponentAnnotation, db_session)

    async def get_by_version(self, design_id: int, version: int) -> Optional[ComponentAnnotation]:
        return await self.get_one(where={"design_id": design_id, "version": version})

    async def get_highest(self, design_id: int) -> Optional[ComponentAnnotation]:
        return await self.get_one(
            where={"design_id": design_id},
            order=[ComponentAnnotation.version.desc()]
        )

    async def get_highest_version(self, design_id: int) -> int:
        stmt = select(func.max(ComponentAnnotation.version)).where(ComponentAnnotation.design_id == design_id)
        executed = await self.db_session.execute(stmt)
        return executed.scalar() or 0

    async def get_latest_active(self, design_id: int) -> Optional[ComponentAnnotation]:
        return await self.get_one(
            where={"design_id": design_id, "status": AnnotationStatus.ACTIVE},
            order=[ComponentAnnotation.version.desc()]
        )

    async def archive_siblings(self, design_id: int, keep_id: int) -> int:
        return await self.update_where(
            [
                ComponentAnnotation.design_id == design_id,
                ComponentAnnotation.id != keep_id,
                ComponentAnnotation.status != AnnotationStatus.ARCHIVED,
            ],
            {"status": AnnotationStatus.ARCHIVED}
        )
