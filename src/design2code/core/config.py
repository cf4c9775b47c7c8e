# src/design2code/core/config.py

from dotenv import load_dotenv
load_dotenv(".env")
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field
from typing import Optional, Literal

class Settings(BaseSettings):
    # model_config 会自动加载 .env 文件
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    APP_ENV: str = "production"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000

    # --- Database ---
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "design2code"

    @computed_field
    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DB: int = 0

    @computed_field
    @property
    def REDIS_URL(self) -> str:
        password = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{password}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # 集群重定向 (MOVED/ASK) 时创建的二级连接
    REDIS_REDIRECT_POOL_MAX_SIZE: int = 16
    REDIS_REDIRECT_POOL_IDLE_SECONDS: float = 300.0

    # --- Storage Infrastructure ---
    STORAGE_PROVIDER: Literal["aliyun_oss"] = "aliyun_oss"
    STORAGE_ENDPOINT: str = Field("oss-cn-hangzhou.aliyuncs.com", description="e.g., oss-cn-hangzhou.aliyuncs.com")
    STORAGE_BUCKET: str = Field("design2code", description="Bucket name")
    STORAGE_ACCESS_KEY: str = Field("", description="Access Key ID")
    STORAGE_SECRET_KEY: str = Field("", description="Access Key Secret")
    # 如果配置了CDN，生成的URL将使用此域名而不是 Endpoint
    STORAGE_PUBLIC_DOMAIN: Optional[str] = None

    # --- Design module ---
    DESIGN_DSL_CACHE_TTL_SECONDS: int = 60 * 60
    DESIGN_ANNOTATION_CACHE_TTL_SECONDS: int = 30 * 60
    DESIGN_PATH_CACHE_TTL_SECONDS: int = 12 * 60 * 60
    DESIGN_RASTERIZE_PATHS: bool = True
    DESIGN_PATH_DEFAULT_SIZE: int = 48

    # --- Design source (MasterGo) ---
    MASTERGO_BASE_URL: str = "https://mastergo.com"
    MASTERGO_TOKEN: Optional[str] = None
    MASTERGO_TIMEOUT_SECONDS: float = 30.0

    # --- Code generation ---
    CODEGEN_WORKER_CONCURRENCY: int = 2
    CODEGEN_JOB_TIMEOUT_SECONDS: int = 600
    CODEGEN_TEMPLATE_VERSION: str = "v1"
    CODEGEN_TASK_LOG_LIMIT: int = 20

settings = Settings()
