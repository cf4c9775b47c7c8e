# src/design2code/services/design/design_document_service.py

import logging
from typing import Any, Dict, List, Optional, Tuple

from design2code.core.config import settings
from design2code.core.context import AppContext
from design2code.dao.design.design_document_dao import DesignDocumentDao
from design2code.models.design import DesignDocument, DesignDocumentStatus
from design2code.schemas.design.design_document_schemas import (
    DesignDocumentCreate, DesignDocumentUpdate, DesignDslRead
)
from design2code.services.base_service import BaseService
from design2code.services.design.design_source import MasterGoClient, DesignSourceDsl
from design2code.services.design.path_asset_service import PathAssetService
from design2code.services.exceptions import NotFoundError, ConflictError, RevisionNotFoundError
from design2code.utils.digest import json_digest

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
_METADATA_FIELDS = ("name", "description", "status", "tags", "meta")


class DesignDocumentService(BaseService):
    """
    [Service Layer] 设计稿与其 DSL 修订。
    每次 DSL 变更 dsl_revision 严格 +1, 并以单条条件 UPDATE 做乐观并发校验。
    只保存当前 DSL 正文; 缓存按 "latest" 与 "revision" 两个键写穿。
    """

    def __init__(
        self,
        context: AppContext,
        design_source: Optional[MasterGoClient] = None,
        path_service: Optional[PathAssetService] = None
    ):
        super().__init__(context)
        self.dao = DesignDocumentDao(context.db)
        self._design_source = design_source
        self.path_service = path_service or PathAssetService(context)
        self.cache_ttl = settings.DESIGN_DSL_CACHE_TTL_SECONDS

    async def _fetch_source(self, url: str) -> DesignSourceDsl:
        """注入的设计源由调用方负责关闭; 否则每次拉取使用独立的客户端"""
        if self._design_source is not None:
            return await self._design_source.get_dsl_from_url(url)
        async with MasterGoClient() as source:
            return await source.get_dsl_from_url(url)

    # --- cache helpers ---

    @staticmethod
    def dsl_cache_key(design_uuid: str, revision: Optional[int] = None) -> str:
        suffix = f":{revision}" if revision is not None else ""
        return f"design:dsl:{design_uuid}{suffix}"

    async def _cache_dsl(self, design_uuid: str, revision: int, dsl: Optional[Dict[str, Any]]):
        payload = {"revision": revision, "dsl": dsl}
        await self.redis.set_json(self.dsl_cache_key(design_uuid), payload, expire=self.cache_ttl)
        await self.redis.set_json(self.dsl_cache_key(design_uuid, revision), payload, expire=self.cache_ttl)

    async def _prepare_dsl(self, dsl: Optional[Dict[str, Any]]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """入库前替换矢量路径, 并计算内容摘要"""
        if dsl is None:
            return None, None
        processed = await self.path_service.process_design_dsl(dsl)
        return processed, json_digest(processed)

    # --- queries ---

    async def get_document(self, design_uuid: str) -> DesignDocument:
        doc = await self.dao.get_by_uuid(design_uuid)
        if not doc:
            raise NotFoundError("Design document not found.")
        return doc

    async def paginate_documents(
        self,
        status: Optional[DesignDocumentStatus] = None,
        created_by: Optional[str] = None,
        keyword: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[DesignDocument], int]:
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        page = max(page, 1)
        return await self.dao.paginate(status=status, created_by=created_by, keyword=keyword, page=page, limit=limit)

    async def get_design_dsl(self, design_uuid: str, revision: Optional[int] = None) -> DesignDslRead:
        """
        cache-aside 读取 DSL。
        指定 revision 且与当前修订不一致时抛出 RevisionNotFoundError (不支持历史修订回溯)。
        """
        cached = await self.redis.get_json(self.dsl_cache_key(design_uuid, revision))
        if isinstance(cached, dict) and (revision is None or cached.get("revision") == revision):
            return DesignDslRead.model_validate(cached)

        doc = await self.get_document(design_uuid)
        await self._cache_dsl(design_uuid, doc.dsl_revision, doc.dsl_data)

        if revision is not None and revision != doc.dsl_revision:
            raise RevisionNotFoundError(
                f"DSL revision {revision} not found, current revision is {doc.dsl_revision}.",
                current_revision=doc.dsl_revision
            )
        return DesignDslRead(revision=doc.dsl_revision, dsl=doc.dsl_data)

    # --- mutations ---

    async def create_document(self, params: DesignDocumentCreate) -> DesignDocument:
        source = await self._fetch_source(params.source_url)
        dsl, digest = await self._prepare_dsl(source.dsl)

        meta = dict(params.meta or {})
        meta["componentDocumentLinks"] = source.component_document_links

        doc = DesignDocument(
            name=params.name,
            description=params.description,
            source_url=params.source_url,
            dsl_data=dsl,
            dsl_revision=1,
            dsl_digest=digest,
            status=DesignDocumentStatus.ACTIVE,
            tags=list(params.tags),
            meta=meta,
            created_by=self.context.actor,
            updated_by=self.context.actor,
        )
        doc = await self.dao.add(doc)
        await self._cache_dsl(doc.uuid, doc.dsl_revision, doc.dsl_data)
        logger.info(f"Design document {doc.uuid} created by {self.context.actor}")
        return doc

    async def update_document(self, design_uuid: str, params: DesignDocumentUpdate) -> DesignDocument:
        doc = await self.get_document(design_uuid)

        if params.dsl_revision is not None and params.dsl_revision != doc.dsl_revision:
            raise ConflictError("DSL revision mismatch, please refresh and retry.")
        expected_revision = params.dsl_revision if params.dsl_revision is not None else doc.dsl_revision

        changes = params.model_dump(exclude_unset=True)
        values: Dict[str, Any] = {k: changes[k] for k in _METADATA_FIELDS if k in changes}
        values["updated_by"] = self.context.actor

        dsl_changed = "dsl_data" in changes
        if dsl_changed:
            dsl, digest = await self._prepare_dsl(params.dsl_data)
            values.update(dsl_data=dsl, dsl_digest=digest, dsl_revision=expected_revision + 1)

        if not await self.dao.update_if_revision(doc.id, expected_revision, values):
            raise ConflictError("DSL revision mismatch, please refresh and retry.")

        await self.db.refresh(doc)
        if dsl_changed:
            await self._cache_dsl(doc.uuid, doc.dsl_revision, doc.dsl_data)
            logger.info(f"Design document {doc.uuid} advanced to DSL revision {doc.dsl_revision}")
        return doc
