# src/design2code/services/design/path_asset_service.py

import json
import logging
from typing import Any, Dict, List, Optional, Tuple, assert_never

from pydantic import ValidationError as SchemaError
from sqlalchemy.exc import SQLAlchemyError

from design2code.core.config import settings
from design2code.core.context import AppContext
from design2code.core.storage.base import BaseStorageProvider
from design2code.core.storage.factory import get_storage_provider
from design2code.dao.asset.path_asset_dao import PathAssetDao
from design2code.schemas.design.dsl_schemas import (
    DesignTree, DesignNode, PathNode, ContainerNode, LayerNode, LeafNode,
    PathItem, LayoutStyle, Style, DslStats, ConvertedPath, LAYER_TYPE
)
from design2code.services.base_service import BaseService
from design2code.services.exceptions import ValidationError
from design2code.services.design import rasterizer
from design2code.utils.digest import path_items_digest

logger = logging.getLogger(__name__)

PATH_CACHE_PREFIX = "design-dsl:path:"
PATH_CACHE_LATEST_KEY = f"{PATH_CACHE_PREFIX}latest"
PAINT_REF_PREFIX = "paint_"
DEFAULT_COLOR = "#000000"
NUMERIC_PRECISION = 2


def normalize_numbers(value: Any, ndigits: int = NUMERIC_PRECISION) -> Any:
    """
    递归地把所有浮点数舍入到 ndigits 位小数。
    设计工具导出的坐标带有很长的浮点尾数, 不处理会让内容寻址缓存频繁失效。
    整数与布尔值保持原样, 多次调用结果不变。
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return round(value, ndigits)
    if isinstance(value, dict):
        return {k: normalize_numbers(v, ndigits) for k, v in value.items()}
    if isinstance(value, list):
        return [normalize_numbers(v, ndigits) for v in value]
    return value


def resolve_fill_color(fill: Optional[str], styles: Dict[str, Style]) -> str:
    """paint_ 前缀为样式引用, 取 styles[ref].value[0]; 其余视为字面颜色; 无法解析时为黑色"""
    if not fill:
        return DEFAULT_COLOR
    if not fill.startswith(PAINT_REF_PREFIX):
        return fill
    style = styles.get(fill)
    if style is None:
        return DEFAULT_COLOR
    value = style.value
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0]
    if isinstance(value, str) and value:
        return value
    return DEFAULT_COLOR


def parse_design_tree(dsl: Dict[str, Any]) -> DesignTree:
    try:
        return DesignTree.model_validate(dsl)
    except SchemaError as e:
        raise ValidationError(f"Malformed design DSL: {e.error_count()} invalid field(s).")


def image_style_id(digest: str) -> str:
    return f"paint_img:{digest[:16]}"


def is_image_style(style: Optional[Style]) -> bool:
    value = style.value if style is not None else None
    return isinstance(value, list) and bool(value) and isinstance(value[0], dict) and "url" in value[0]


class PathAssetService(BaseService):
    """
    把 DSL 中的矢量 PATH 节点替换为引用栅格图片的 LAYER 节点。
    图片按 (pathData, fill) 序列的 digest 去重: 缓存 -> 数据库 -> 渲染上传, 命中后回填缓存。
    单个节点转换失败只影响该节点 (原样保留), 不影响整棵树。
    """

    def __init__(self, context: AppContext, storage: Optional[BaseStorageProvider] = None):
        super().__init__(context)
        self.dao = PathAssetDao(context.db)
        self._storage = storage
        self.cache_ttl = settings.DESIGN_PATH_CACHE_TTL_SECONDS
        self.default_size = settings.DESIGN_PATH_DEFAULT_SIZE

    @property
    def storage(self) -> BaseStorageProvider:
        # 延迟获取: 纯缓存命中的请求不需要初始化存储客户端
        if self._storage is None:
            self._storage = get_storage_provider()
        return self._storage

    # ==========================================================================
    # 1. Tree processing
    # ==========================================================================

    async def process_design_dsl(self, dsl: Dict[str, Any]) -> Dict[str, Any]:
        """
        接受 DSLData ({styles, nodes}) 或其外层包装 ({dsl: DSLData})。
        返回新的字典, 不修改入参。
        """
        if "nodes" not in dsl and isinstance(dsl.get("dsl"), dict):
            return {**dsl, "dsl": await self.process_design_dsl(dsl["dsl"])}

        normalized = normalize_numbers(dsl)
        if not settings.DESIGN_RASTERIZE_PATHS:
            return normalized

        tree = parse_design_tree(normalized)
        styles: Dict[str, Style] = dict(tree.styles)

        # 顺序遍历: 所有节点共享同一个数据库会话
        nodes: List[DesignNode] = []
        for node in tree.nodes:
            nodes.append(await self._process_node(node, styles))

        return tree.model_copy(update={"nodes": nodes, "styles": styles}).to_payload()

    async def _process_node(self, node: DesignNode, styles: Dict[str, Style]) -> DesignNode:
        match node:
            case PathNode():
                return await self._convert_path_node(node, styles)
            case ContainerNode():
                if "children" not in node.model_fields_set:
                    return node
                children = []
                for child in node.children:
                    children.append(await self._process_node(child, styles))
                return node.model_copy(update={"children": children})
            case LayerNode() | LeafNode():
                return node
            case _:
                assert_never(node)

    async def _convert_path_node(self, node: PathNode, styles: Dict[str, Style]) -> DesignNode:
        items = node.convertible_items()
        if not items:
            return node

        digest = path_items_digest((item.data, item.fill or "") for item in items)
        try:
            image_url = await self._get_or_create_image(digest, items, node.layoutStyle, styles)
        except Exception as e:
            logger.warning(f"PATH node '{node.id}' conversion failed, keeping original node: {e}", exc_info=True)
            return node

        style_id = image_style_id(digest)
        styles[style_id] = Style(
            value=[{"url": image_url, "filters": ""}],
            token=f"converted-path/{node.name or node.id}"
        )
        return LayerNode(
            type=LAYER_TYPE,
            id=node.id,
            name=node.name,
            layoutStyle=node.layoutStyle,
            fill=style_id
        )

    # ==========================================================================
    # 2. Content-addressed lookup & conversion
    # ==========================================================================

    async def _get_or_create_image(
        self,
        digest: str,
        items: List[PathItem],
        layout: Optional[LayoutStyle],
        styles: Dict[str, Style]
    ) -> str:
        cached = await self.get_cached_image_url(digest)
        if cached:
            return cached

        paths = [(item.data, resolve_fill_color(item.fill, styles)) for item in items]
        width = layout.width if layout else None
        height = layout.height if layout else None
        png = await rasterizer.render_png(paths, width, height, self.default_size)

        image_url = await self.storage.upload_object(
            key=f"design/path-assets/{digest}.png",
            data=png,
            content_type="image/png"
        )
        await self._persist(digest, image_url, items)
        return image_url

    async def get_cached_image_url(self, digest: str) -> Optional[str]:
        """缓存 -> 数据库; 数据库命中时回填缓存。两层都未命中返回 None。"""
        cache_key = f"{PATH_CACHE_PREFIX}{digest}"
        cached = await self.redis.get(cache_key)
        if cached:
            return cached

        try:
            # 失败只回滚到保存点, 外层请求事务仍可继续
            async with self.db.begin_nested():
                record = await self.dao.get_by_digest(digest)
        except SQLAlchemyError as e:
            logger.warning(f"Path asset lookup failed for digest {digest}: {e}")
            return None

        if record and record.image_url:
            await self.redis.set(cache_key, record.image_url, expire=self.cache_ttl)
            return record.image_url
        return None

    async def _persist(self, digest: str, image_url: str, items: List[PathItem]):
        path_data = "|".join(item.data for item in items)
        fill_style = "|".join(item.fill or "" for item in items)
        try:
            async with self.db.begin_nested():
                await self.dao.upsert(digest, image_url, path_data, fill_style)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to persist path asset {digest}: {e}")

        await self.redis.set(f"{PATH_CACHE_PREFIX}{digest}", image_url, expire=self.cache_ttl)
        await self.redis.set(
            PATH_CACHE_LATEST_KEY,
            json.dumps({"digest": digest, "imageUrl": image_url}),
            expire=self.cache_ttl
        )

    async def convert_single_path(
        self,
        path_data: str,
        fill: str,
        width: Optional[float] = None,
        height: Optional[float] = None,
        styles: Optional[Dict[str, Any]] = None
    ) -> ConvertedPath:
        """转换单条路径, 不经过整棵树。失败直接抛出。"""
        style_map = {k: Style.model_validate(v) for k, v in (styles or {}).items()}
        item = PathItem(fill=fill, data=path_data)
        digest = path_items_digest([(path_data, fill or "")])
        layout = LayoutStyle(width=width, height=height)
        image_url = await self._get_or_create_image(digest, [item], layout, style_map)
        return ConvertedPath(digest=digest, imageUrl=image_url, styleId=image_style_id(digest))

    # ==========================================================================
    # 3. Observability
    # ==========================================================================

    @staticmethod
    def get_dsl_stats(dsl: Dict[str, Any]) -> DslStats:
        if "nodes" not in dsl and isinstance(dsl.get("dsl"), dict):
            dsl = dsl["dsl"]
        tree = parse_design_tree(dsl)
        stats = DslStats(styleCount=len(tree.styles))

        def walk(nodes: List[DesignNode]):
            for node in nodes:
                stats.totalNodes += 1
                match node:
                    case PathNode():
                        stats.pathNodes += 1
                    case LayerNode():
                        if node.fill and is_image_style(tree.styles.get(node.fill)):
                            stats.convertedNodes += 1
                    case ContainerNode():
                        walk(node.children)
                    case LeafNode():
                        pass
                    case _:
                        assert_never(node)

        walk(tree.nodes)
        return stats
