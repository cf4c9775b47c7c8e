# src/design2code/services/design/annotation_service.py

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from design2code.core.config import settings
from design2code.core.context import AppContext
from design2code.dao.design.annotation_dao import ComponentAnnotationDao
from design2code.dao.design.design_document_dao import DesignDocumentDao
from design2code.models.design import ComponentAnnotation, AnnotationStatus, DesignDocument
from design2code.schemas.design.annotation_schemas import AnnotationSave, AnnotationRead, AnnotationChange
from design2code.services.base_service import BaseService
from design2code.services.exceptions import NotFoundError, ConflictError

logger = logging.getLogger(__name__)


def flatten_annotation(root: Any) -> Dict[str, Dict[str, Any]]:
    """先序遍历标注树, 得到 id -> node。重复 id 以后出现者为准。"""
    nodes: Dict[str, Dict[str, Any]] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        node_id = node.get("id")
        if node_id:
            nodes[str(node_id)] = node
        children = node.get("children")
        if isinstance(children, list):
            stack.extend(reversed(children))
    return nodes


def diff_annotation_trees(from_root: Any, to_root: Any) -> List[AnnotationChange]:
    """
    按节点 id 比较两棵标注树: added / updated 按 to 树的先序顺序, removed 按 from 树顺序。
    节点整体做结构相等比较 (数组有序); 不识别移动, 仅位置变化的节点不计入变更。
    """
    before = flatten_annotation(from_root)
    after = flatten_annotation(to_root)
    changes: List[AnnotationChange] = []

    for node_id, new_node in after.items():
        old_node = before.get(node_id)
        if old_node is None:
            changes.append(AnnotationChange(nodeId=node_id, changeType="added", detail={"after": new_node}))
        elif old_node != new_node:
            changes.append(AnnotationChange(
                nodeId=node_id, changeType="updated", detail={"before": old_node, "after": new_node}
            ))

    for node_id, old_node in before.items():
        if node_id not in after:
            changes.append(AnnotationChange(nodeId=node_id, changeType="removed", detail={"before": old_node}))

    return changes


class AnnotationService(BaseService):
    """
    [Service Layer] 组件标注的版本管理。
    版本号按设计稿单调递增, 新版本写入后其余版本全部归档; (design_id, version) 唯一索引兜底并发冲突。
    """

    def __init__(self, context: AppContext):
        super().__init__(context)
        self.dao = ComponentAnnotationDao(context.db)
        self.design_dao = DesignDocumentDao(context.db)
        self.cache_ttl = settings.DESIGN_ANNOTATION_CACHE_TTL_SECONDS

    @staticmethod
    def annotation_cache_key(design_uuid: str, version: Optional[int] = None) -> str:
        suffix = f":{version}" if version is not None else ""
        return f"design:annotations:{design_uuid}{suffix}"

    async def _get_design(self, design_uuid: str) -> DesignDocument:
        design = await self.design_dao.get_by_uuid(design_uuid)
        if not design:
            raise NotFoundError("Design document not found.")
        return design

    async def _cache(self, design_uuid: str, annotation: AnnotationRead, is_latest: bool):
        payload = annotation.model_dump(mode="json")
        if is_latest:
            await self.redis.set_json(self.annotation_cache_key(design_uuid), payload, expire=self.cache_ttl)
        await self.redis.set_json(
            self.annotation_cache_key(design_uuid, annotation.version), payload, expire=self.cache_ttl
        )

    async def save_annotation(self, design_uuid: str, params: AnnotationSave) -> AnnotationRead:
        design = await self._get_design(design_uuid)
        highest_version = await self.dao.get_highest_version(design.id)
        actor = self.context.actor

        existing = await self.dao.get_by_version(design.id, params.version) if params.version else None

        if existing:
            if not params.force:
                raise ConflictError(f"Annotation version {params.version} already exists.")
            record = await self._amend(existing, params, is_highest=existing.version == highest_version)
        else:
            if params.version is not None and params.version <= highest_version and not params.force:
                raise ConflictError(
                    f"Annotation version must be greater than current latest version {highest_version}."
                )
            target_version = params.version if params.version is not None else highest_version + 1
            record = await self._create_version(design.id, target_version, params)

        result = AnnotationRead.model_validate(record)
        await self._cache(design_uuid, result, is_latest=result.status == AnnotationStatus.ACTIVE)
        logger.info(f"Annotation v{result.version} saved for design {design_uuid} by {actor}")
        return result

    async def _create_version(self, design_id: int, version: int, params: AnnotationSave) -> ComponentAnnotation:
        record = ComponentAnnotation(
            design_id=design_id,
            version=version,
            root_annotation=params.root_annotation,
            expanded_keys=list(params.expanded_keys),
            schema_version=params.schema_version,
            status=AnnotationStatus.ACTIVE,
            created_by=self.context.actor,
            updated_by=self.context.actor,
        )
        try:
            record = await self.dao.add(record)
        except IntegrityError:
            raise ConflictError(f"Annotation version {version} was saved concurrently, please reload and retry.")

        # 历史版本标记为归档
        await self.dao.archive_siblings(design_id, record.id)
        return record

    async def _amend(self, record: ComponentAnnotation, params: AnnotationSave, is_highest: bool) -> ComponentAnnotation:
        """force 覆盖已有版本: 版本号不变, 不再重复归档兄弟版本"""
        record.root_annotation = params.root_annotation
        record.expanded_keys = list(params.expanded_keys)
        record.schema_version = params.schema_version
        record.updated_by = self.context.actor
        # 覆盖已归档的旧版本时保持 archived, 每个设计稿只有一个 active 版本
        if is_highest:
            record.status = AnnotationStatus.ACTIVE
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def get_annotation(self, design_uuid: str, version: Optional[int] = None) -> AnnotationRead:
        """
        指定 version 时精确读取 (不看状态); 否则优先取 active 版本, 没有则取最高版本。
        """
        cached = await self.redis.get_json(self.annotation_cache_key(design_uuid, version))
        if isinstance(cached, dict) and (version is None or cached.get("version") == version):
            return AnnotationRead.model_validate(cached)

        design = await self._get_design(design_uuid)
        if version is not None:
            record = await self.dao.get_by_version(design.id, version)
        else:
            record = await self.dao.get_latest_active(design.id) or await self.dao.get_highest(design.id)

        if not record:
            raise NotFoundError("Annotation not found.")

        result = AnnotationRead.model_validate(record)
        await self._cache(design_uuid, result, is_latest=version is None or result.status == AnnotationStatus.ACTIVE)
        return result

    async def diff_annotations(self, design_uuid: str, from_version: int, to_version: int) -> List[AnnotationChange]:
        source = await self.get_annotation(design_uuid, from_version)
        target = await self.get_annotation(design_uuid, to_version)
        return diff_annotation_trees(source.root_annotation, target.root_annotation)
