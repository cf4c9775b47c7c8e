# src/design2code/services/design/design_source.py

import logging
from typing import Any, Dict, List, NamedTuple, Optional
from urllib.parse import urlsplit, parse_qs

import httpx

from design2code.core.config import settings
from design2code.services.exceptions import DesignSourceError

logger = logging.getLogger(__name__)


class DesignSourceDsl(NamedTuple):
    dsl: Dict[str, Any]
    component_document_links: List[str]


def extract_component_document_links(dsl: Dict[str, Any]) -> List[str]:
    """收集所有节点 componentInfo.componentSetDocumentLink 的第一项, 去重并保持首次出现顺序"""
    links: Dict[str, None] = {}

    def traverse(node: Any):
        if not isinstance(node, dict):
            return
        info = node.get("componentInfo") or {}
        doc_links = info.get("componentSetDocumentLink") if isinstance(info, dict) else None
        if isinstance(doc_links, list) and doc_links and doc_links[0]:
            links.setdefault(doc_links[0], None)
        for child in node.get("children") or []:
            traverse(child)

    nodes = dsl.get("nodes") if isinstance(dsl, dict) else None
    if isinstance(nodes, list):
        for node in nodes:
            traverse(node)
    return list(links)


class MasterGoClient:
    """
    MasterGo 设计源客户端: 解析设计稿链接 (含 /goto/ 短链) 并拉取 DSL。
    持有自己的 httpx.AsyncClient, 通过 async with 使用, 退出时关闭。
    """
    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = self._origin(settings.MASTERGO_BASE_URL)
        self.token = settings.MASTERGO_TOKEN
        self.http_client = http_client or httpx.AsyncClient(timeout=settings.MASTERGO_TIMEOUT_SECONDS)

    @staticmethod
    def _origin(url: str) -> str:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise DesignSourceError(f"Invalid MasterGo base URL: {url}")
        return f"{parts.scheme}://{parts.netloc}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["X-MG-UserAccessToken"] = self.token
        return headers

    async def resolve_short_link(self, url: str) -> str:
        try:
            response = await self.http_client.get(url, follow_redirects=False)
        except httpx.RequestError as e:
            raise DesignSourceError(f"Failed to resolve short link {url}: {e}")
        location = response.headers.get("location")
        if not response.is_redirect or not location:
            raise DesignSourceError("No redirect URL found for short link")
        return location

    async def extract_ids(self, url: str) -> tuple[str, str]:
        """返回 (file_id, layer_id): file_id 为路径中的纯数字段, layer_id 来自 layer_id 查询参数"""
        target = await self.resolve_short_link(url) if "/goto/" in url else url
        parts = urlsplit(target)
        file_id = next((segment for segment in parts.path.split("/") if segment.isdigit()), None)
        layer_id = (parse_qs(parts.query).get("layer_id") or [None])[0]
        if not file_id:
            raise DesignSourceError("Could not extract fileId from URL")
        if not layer_id:
            raise DesignSourceError("Could not extract layerId from URL")
        return file_id, layer_id

    async def get_dsl(self, file_id: str, layer_id: str) -> DesignSourceDsl:
        try:
            response = await self.http_client.get(
                f"{self.base_url}/mcp/dsl",
                params={"fileId": file_id, "layerId": layer_id},
                headers=self._headers()
            )
            response.raise_for_status()
            dsl = response.json()
        except httpx.HTTPStatusError as e:
            raise DesignSourceError(f"MasterGo returned HTTP {e.response.status_code} for file {file_id}")
        except httpx.RequestError as e:
            raise DesignSourceError(f"MasterGo request failed for file {file_id}: {e}")
        except ValueError:
            raise DesignSourceError(f"MasterGo returned a non-JSON body for file {file_id}")

        if not isinstance(dsl, dict):
            raise DesignSourceError(f"Unexpected DSL payload for file {file_id}")
        return DesignSourceDsl(dsl=dsl, component_document_links=extract_component_document_links(dsl))

    async def get_dsl_from_url(self, url: str) -> DesignSourceDsl:
        file_id, layer_id = await self.extract_ids(url)
        logger.info(f"Fetching MasterGo DSL fileId={file_id} layerId={layer_id}")
        return await self.get_dsl(file_id, layer_id)

    async def close(self):
        if not self.http_client.is_closed:
            await self.http_client.aclose()

    async def __aenter__(self) -> "MasterGoClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
