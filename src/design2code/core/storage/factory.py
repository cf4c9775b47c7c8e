# src/design2code/core/storage/factory.py

from typing import Dict, Optional
from design2code.core.config import settings
from .base import BaseStorageProvider, ALL_STORAGE_PROVIDERS

# 导入具体实现以触发注册
from .aliyun_oss import AliyunOSSProvider

# 缓存已初始化的实例：Key=ProviderName, Value=ProviderInstance
_storage_instances: Dict[str, BaseStorageProvider] = {}

def get_storage_provider(name: Optional[str] = None) -> BaseStorageProvider:
    """
    获取存储提供商实例。

    :param name: 指定 Provider 名称，不传则使用配置中的 STORAGE_PROVIDER。
    """
    target_name = name or settings.STORAGE_PROVIDER

    if target_name in _storage_instances:
        return _storage_instances[target_name]

    provider_cls = ALL_STORAGE_PROVIDERS.get(target_name)
    if not provider_cls:
        available = list(ALL_STORAGE_PROVIDERS.keys())
        raise ValueError(
            f"Storage provider '{target_name}' not registered. "
            f"Available: {available}."
        )

    instance = provider_cls()
    _storage_instances[target_name] = instance
    return instance
