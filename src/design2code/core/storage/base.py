# src/design2code/core/storage/base.py

from abc import ABC, abstractmethod
from typing import Dict, Type, TypeVar
from enum import Enum

class StorageType(str, Enum):
    ALIYUN_OSS = "aliyun_oss"

class BaseStorageProvider(ABC):
    """
    存储提供商抽象基类 (blob store)。
    所有具体实现必须继承此类并定义 `name` 属性。
    同一 key 的重复上传必须是幂等的 (覆盖写入相同内容)。
    """
    name: str = "base"

    @abstractmethod
    async def upload_object(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """
        上传对象并返回其公开访问 URL。
        失败时抛出 StorageError。
        """
        raise NotImplementedError

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        """
        获取文件的访问 URL。
        如果配置了 CDN，应返回 CDN 地址。结果只取决于 key。
        """
        raise NotImplementedError

# 定义注册表
ALL_STORAGE_PROVIDERS: Dict[str, Type[BaseStorageProvider]] = {}

T = TypeVar('T', bound=BaseStorageProvider)

def register_storage_provider(cls: Type[T]) -> Type[T]:
    """
    装饰器：注册存储提供商实现类。
    """
    if not getattr(cls, 'name', None):
        raise ValueError(f"Storage provider class {cls.__name__} must define a 'name' attribute.")

    if cls.name in ALL_STORAGE_PROVIDERS:
        raise ValueError(f"Storage provider with name '{cls.name}' already registered.")

    ALL_STORAGE_PROVIDERS[cls.name] = cls
    return cls
