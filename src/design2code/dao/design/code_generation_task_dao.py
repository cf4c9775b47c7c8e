# src/design2code/dao/design/code_generation_task_dao.py

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Iterable, List, Optional, Tuple

from design2code.dao.base_dao import BaseDao
from design2code.models.design import CodeGenerationTask, CodeGenerationTaskLog, CodeGenerationTaskStatus

class CodeGenerationTaskDao(BaseDao[CodeGenerationTask]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(CodeGenerationTask, db_session)

    async def get_by_uuid(self, uuid: str) -> Optional[CodeGenerationTask]:
        return await self.get_one(where={"uuid": uuid})

    async def transition(
        self,
        task_id: int,
        from_statuses: Iterable[CodeGenerationTaskStatus],
        values: dict
    ) -> bool:
        """
        状态机迁移: 仅当任务当前处于 from_statuses 之一时写入 values。
        返回 False 表示迁移非法或已被并发抢先。
        """
        affected = await self.update_where(
            [CodeGenerationTask.id == task_id, CodeGenerationTask.status.in_(list(from_statuses))],
            values
        )
        return affected > 0

    async def paginate(
        self,
        design_id: int,
        status: Optional[CodeGenerationTaskStatus] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[CodeGenerationTask], int]:
        filters = [CodeGenerationTask.design_id == design_id]
        if status:
            filters.append(CodeGenerationTask.status == status)
        items = await self.get_list(
            where=filters,
            order=[CodeGenerationTask.created_at.desc(), CodeGenerationTask.id.desc()],
            page=page,
            limit=limit
        )
        total = await self.count(where=filters)
        return items, total


class CodeGenerationTaskLogDao(BaseDao[CodeGenerationTaskLog]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(CodeGenerationTaskLog, db_session)

    async def list_recent(self, task_id: int, limit: int = 50) -> List[CodeGenerationTaskLog]:
        return await self.get_list(
            where={"task_id": task_id},
            order=[CodeGenerationTaskLog.created_at.desc(), CodeGenerationTaskLog.id.desc()],
            page=1,
            limit=limit
        )

    async def delete_for_task(self, task_id: int) -> int:
        return await self.delete_where({"task_id": task_id})
