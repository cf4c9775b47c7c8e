# src/design2code/core/context.py

from pydantic import BaseModel, ConfigDict
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from arq.connections import ArqRedis

from design2code.services.redis_service import RedisService

SYSTEM_OPERATOR = "system"

class AppContext(BaseModel):
    """
    Defines the complete, typed context for service layer operations.
    This acts as a "contract" for what dependencies are available and is
    the single source of truth for service dependencies.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    # 核心数据库会话
    db: AsyncSession

    # 全局应用级服务
    redis_service: RedisService
    arq_pool: Optional[ArqRedis] = None

    # 调用方标识, 由 X-Operator-Id 请求头传入; worker 内为 None
    operator_id: Optional[str] = None

    @property
    def actor(self) -> str:
        """审计字段 (created_by / updated_by) 使用的操作人, 后台任务记为 system"""
        return self.operator_id or SYSTEM_OPERATOR
