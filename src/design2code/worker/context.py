# src/design2code/worker/context.py

from sqlalchemy.ext.asyncio import AsyncSession
from design2code.core.context import AppContext

def build_worker_context(ctx: dict, db_session: AsyncSession) -> AppContext:
    """
    为后台任务重建 AppContext。
    worker 没有请求头, operator_id 为空, 审计字段记为 system。
    """
    return AppContext(
        db=db_session,
        redis_service=ctx['redis_service'],
        arq_pool=ctx.get('arq_pool'),
    )
