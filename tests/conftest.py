# tests/conftest.py

from typing import AsyncGenerator, Dict, Optional
import pytest
from unittest.mock import AsyncMock, MagicMock
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from arq.connections import ArqRedis

from design2code.db.base import Base
from design2code.db.session import get_db
from design2code.core.context import AppContext
from design2code.core.storage.base import BaseStorageProvider
from design2code.services.redis_service import RedisService
from design2code.models import DesignDocument
from factories import CDN, make_dsl

# ==============================================================================
# 1. 数据库 Fixtures
# ==============================================================================

@pytest.fixture(scope="function")
async def engine():
    """
    每个测试使用独立的内存 SQLite 库。
    StaticPool 让所有会话共享同一条连接, 否则每个连接都会看到一个空库。
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()

@pytest.fixture(scope="function")
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine, class_=AsyncSession
    )

@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()

# ==============================================================================
# 2. Mock 外部协作者 Fixtures
# ==============================================================================

class FakeRedisClient:
    """redis.asyncio.Redis 的内存替身, 只实现 RedisService 用到的命令。"""
    def __init__(self):
        self.store: Dict[str, str] = {}
        self.expirations: Dict[str, Optional[int]] = {}
        self.closed = False

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expirations[key] = ex
        return True

    async def delete(self, key):
        existed = key in self.store
        self.store.pop(key, None)
        return int(existed)

    async def aclose(self):
        self.closed = True

@pytest.fixture
def fake_redis_client() -> FakeRedisClient:
    return FakeRedisClient()

@pytest.fixture
def redis_service(fake_redis_client) -> RedisService:
    return RedisService(client=fake_redis_client)

@pytest.fixture
def mock_storage_provider(monkeypatch) -> MagicMock:
    """
    Mock storage provider to bypass real OSS calls.
    Patches every module that resolves the provider through the factory.
    """
    mock_provider = MagicMock(spec=BaseStorageProvider)
    mock_provider.name = "mock_provider"
    mock_provider.upload_object = AsyncMock(
        side_effect=lambda key, data, content_type="application/octet-stream": f"{CDN}/{key}"
    )
    mock_provider.get_public_url.side_effect = lambda key: f"{CDN}/{key}"

    for target in (
        "design2code.services.design.path_asset_service.get_storage_provider",
        "design2code.services.design.code_generation_task_service.get_storage_provider",
        "design2code.services.design.requirement_document_service.get_storage_provider",
        "design2code.worker.tasks.code_generation.get_storage_provider",
    ):
        monkeypatch.setattr(target, lambda name=None: mock_provider)
    return mock_provider

@pytest.fixture
def mock_render_png(monkeypatch) -> AsyncMock:
    """跳过 cairo 渲染, 返回固定的 PNG 字节"""
    render = AsyncMock(return_value=b"\x89PNG\r\n\x1a\nfake")
    monkeypatch.setattr("design2code.services.design.rasterizer.render_png", render)
    return render

@pytest.fixture
def arq_pool_mock() -> AsyncMock:
    mock = AsyncMock(spec=ArqRedis)
    mock.enqueue_job.return_value = MagicMock(name="Job")
    return mock

@pytest.fixture
def app_context(db_session, redis_service, arq_pool_mock) -> AppContext:
    return AppContext(
        db=db_session,
        redis_service=redis_service,
        arq_pool=arq_pool_mock,
        operator_id="alice"
    )

# ==============================================================================
# 3. HTTP Client
# ==============================================================================

@pytest.fixture
async def client(session_factory, redis_service, arq_pool_mock) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient 直连 ASGI 应用。
    ASGITransport 不触发 lifespan, app.state 在这里手动装配。
    """
    from design2code.main import app

    async def override_get_db():
        async with session_factory() as session:
            async with session.begin():
                yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.redis_service = redis_service
    app.state.arq_pool = arq_pool_mock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

# ==============================================================================
# 4. 数据工厂
# ==============================================================================

@pytest.fixture
def design_factory(db_session):
    """直接落库一个设计稿, 绕过设计源拉取"""
    async def _create(name: str = "Landing Page", dsl: Optional[dict] = None, **kwargs) -> DesignDocument:
        doc = DesignDocument(
            name=name,
            dsl_data=dsl if dsl is not None else make_dsl(),
            dsl_revision=1,
            tags=[],
            meta={},
            created_by=kwargs.pop("created_by", "alice"),
            **kwargs
        )
        db_session.add(doc)
        await db_session.flush()
        return doc

    return _create
