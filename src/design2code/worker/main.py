# src/design2code/worker/main.py

import logging
from arq import create_pool
from arq.connections import RedisSettings
from design2code.db.session import SessionLocal, engine
from design2code.services.redis_service import RedisService
from design2code.core.config import settings

logger = logging.getLogger(__name__)

TASK_FUNCTIONS = []

def get_redis_settings():
    """统一的 Redis 配置获取函数"""
    return RedisSettings(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        password=settings.REDIS_PASSWORD,
        database=settings.REDIS_DB
    )

async def startup(ctx):
    """Worker 进程启动时，创建依赖工厂。"""
    ctx['db_session_factory'] = SessionLocal
    ctx['redis_service'] = RedisService()
    ctx['arq_pool'] = await create_pool(get_redis_settings())
    logger.info("ARQ worker started, database session factory is ready.")

async def shutdown(ctx):
    """Worker 进程关闭时，清理资源。"""
    await ctx['redis_service'].close()
    await ctx['arq_pool'].aclose()
    await engine.dispose()
    logger.info("ARQ worker shut down, database engine disposed.")

class WorkerSettings:
    """ARQ Worker 的主配置。"""
    functions = TASK_FUNCTIONS
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = get_redis_settings()
    max_jobs = settings.CODEGEN_WORKER_CONCURRENCY
    job_timeout = settings.CODEGEN_JOB_TIMEOUT_SECONDS
