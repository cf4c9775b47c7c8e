# src/design2code/core/storage/aliyun_oss.py

import asyncio
import logging
from functools import partial

import oss2  # type: ignore
from design2code.core.config import settings
from design2code.services.exceptions import StorageError
from .base import register_storage_provider, BaseStorageProvider, StorageType

logger = logging.getLogger(__name__)

@register_storage_provider
class AliyunOSSProvider(BaseStorageProvider):
    name: str = StorageType.ALIYUN_OSS.value

    def __init__(self):
        # 阿里云 OSS2 库是同步的，需要专门的 Auth 实例
        self.auth = oss2.Auth(settings.STORAGE_ACCESS_KEY, settings.STORAGE_SECRET_KEY)
        self.bucket_name = settings.STORAGE_BUCKET
        self.endpoint = settings.STORAGE_ENDPOINT
        # 初始化 Bucket 对象 (轻量级，不涉及网络请求)
        self.bucket = oss2.Bucket(self.auth, self.endpoint, self.bucket_name)

        self.public_domain = settings.STORAGE_PUBLIC_DOMAIN or f"https://{self.bucket_name}.{self.endpoint}"

    async def _run_in_executor(self, func, *args, **kwargs):
        """
        将同步 IO 操作放入线程池执行，避免阻塞 Async Event Loop
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def upload_object(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        clean_key = key.lstrip('/')
        try:
            await self._run_in_executor(
                self.bucket.put_object, clean_key, data, headers={'Content-Type': content_type}
            )
        except oss2.exceptions.OssError as e:
            logger.error(f"OSS Upload Error: {str(e)} Key: {clean_key}")
            raise StorageError(f"Failed to upload object '{clean_key}': {e}") from e
        return self.get_public_url(clean_key)

    def get_public_url(self, key: str) -> str:
        # 纯字符串拼接，无需 IO
        base = self.public_domain.rstrip('/')
        clean_key = key.lstrip('/')
        return f"{base}/{clean_key}"
