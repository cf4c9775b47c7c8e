import logging
from arq import create_pool
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from design2code.db.session import engine
from design2code.core.config import settings
from design2code.api.router import router
from design2code.services.redis_service import RedisService
from design2code.services.exceptions import (
    ServiceException, NotFoundError, RevisionNotFoundError, ConflictError
)
from design2code.worker.main import get_redis_settings

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Redis 连接池生命周期 ---
    # 缓存客户端与 ARQ 投递客户端都在 Web 进程内共享
    logger.info("Connecting to Redis...")
    app.state.redis_service = RedisService()
    app.state.arq_pool = await create_pool(get_redis_settings())

    yield

    # --- 清理 ---
    logger.info("Closing Redis connections...")
    await app.state.redis_service.close()
    await app.state.arq_pool.aclose()
    await engine.dispose()

app = FastAPI(
    title="design2code",
    lifespan=lifespan
)

#设置允许访问的域名
origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"])

app.include_router(router)

def _error(status_code: int, msg: str, data=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "msg": msg, "data": data},
    )

@app.exception_handler(RevisionNotFoundError)
async def revision_not_found_exception_handler(request: Request, exc: RevisionNotFoundError):
    """
    请求的 DSL 修订已不存在, 返回 404 并附带当前修订号, 便于客户端重新拉取。
    """
    return _error(status.HTTP_404_NOT_FOUND, exc.message, {"current_revision": exc.current_revision})

@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, exc.message)

@app.exception_handler(ConflictError)
async def conflict_exception_handler(request: Request, exc: ConflictError):
    """
    版本冲突 / 非法状态迁移, 返回 409, 客户端可刷新后重试。
    """
    return _error(status.HTTP_409_CONFLICT, exc.message)

@app.exception_handler(ServiceException)
async def service_exception_handler(request: Request, exc: ServiceException):
    # 处理所有来自服务层的、可预期的业务逻辑错误
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return _error(status.HTTP_400_BAD_REQUEST, exc.message)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 重写 FastAPI 默认的 HTTPException 处理器，以匹配我们的响应格式
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": exc.status_code, "msg": exc.detail, "data": None},
        headers=exc.headers,
    )

@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    # 这个处理器只处理真正未预料到的服务器内部错误
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _error(500, "Internal Server Error")
