# src/design2code/api/dependencies/context.py

from typing import Optional
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from design2code.core.context import AppContext
from design2code.db.session import get_db

async def get_app_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    x_operator_id: Optional[str] = Header(None, alias="X-Operator-Id")
) -> AppContext:
    """
    构建请求级 AppContext。
    鉴权在网关完成, 这里只透传操作人标识; 缺省时审计字段记为 system。
    """
    operator_id = x_operator_id.strip() if x_operator_id else None
    return AppContext(
        db=db,
        redis_service=request.app.state.redis_service,
        arq_pool=getattr(request.app.state, "arq_pool", None),
        operator_id=operator_id or None
    )

AppContextDep = Depends(get_app_context)
