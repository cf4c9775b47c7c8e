# src/design2code/schemas/design/dsl_schemas.py

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

# 设计工具导出的 DSL 字段远多于这里声明的部分, 所有模型都保留未声明字段
_OPEN = ConfigDict(extra="allow", populate_by_name=True)

PATH_TYPE = "PATH"
LAYER_TYPE = "LAYER"
CONTAINER_TYPES = ("GROUP", "FRAME", "INSTANCE")


class LayoutStyle(BaseModel):
    model_config = _OPEN

    width: Optional[float] = None
    height: Optional[float] = None
    relativeX: Optional[float] = None
    relativeY: Optional[float] = None


class PathItem(BaseModel):
    model_config = _OPEN

    fill: Optional[str] = None
    data: Optional[str] = None


class Style(BaseModel):
    """styles 表中的一项; value 可以是颜色列表、字体描述或图片引用列表"""
    model_config = _OPEN

    value: Any = None
    token: Optional[str] = None


class BaseNode(BaseModel):
    model_config = _OPEN

    id: Optional[str] = None
    name: Optional[str] = None
    layoutStyle: Optional[LayoutStyle] = None


class PathNode(BaseNode):
    """矢量路径节点, 转换单元为其全部 path 项"""
    type: Literal["PATH"] = PATH_TYPE
    path: List[PathItem] = Field(default_factory=list)

    def convertible_items(self) -> List[PathItem]:
        return [item for item in self.path if item.data]


class ContainerNode(BaseNode):
    type: Literal["GROUP", "FRAME", "INSTANCE"]
    children: List["DesignNode"] = Field(default_factory=list)


class LayerNode(BaseNode):
    """栅格图层节点, fill 指向 styles 中的图片样式"""
    type: Literal["LAYER"] = LAYER_TYPE
    fill: Optional[str] = None


class LeafNode(BaseNode):
    """其余节点类型 (TEXT 等), 原样透传"""
    type: Optional[str] = None


def _node_tag(value: Any) -> str:
    node_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if node_type == PATH_TYPE:
        return "path"
    if node_type in CONTAINER_TYPES:
        return "container"
    if node_type == LAYER_TYPE:
        return "layer"
    return "leaf"


DesignNode = Annotated[
    Union[
        Annotated[PathNode, Tag("path")],
        Annotated[ContainerNode, Tag("container")],
        Annotated[LayerNode, Tag("layer")],
        Annotated[LeafNode, Tag("leaf")],
    ],
    Discriminator(_node_tag),
]

ContainerNode.model_rebuild()


class DesignTree(BaseModel):
    """DSLData: 全局 styles 表 + 根节点列表"""
    model_config = _OPEN

    styles: Dict[str, Style] = Field(default_factory=dict)
    nodes: List[DesignNode] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


class DslStats(BaseModel):
    totalNodes: int = 0
    pathNodes: int = 0
    convertedNodes: int = 0
    styleCount: int = 0


class ConvertedPath(BaseModel):
    digest: str
    imageUrl: str
    styleId: str


class PathConvertRequest(BaseModel):
    path_data: str = Field(..., min_length=1)
    fill: str = ""
    width: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    styles: Dict[str, Any] = Field(default_factory=dict)
