"""Mem0 平台 REST API 客户端（aiohttp）"""

from typing import Any, Dict, Optional

import aiohttp

from .clients import SemanticMemoryClient
from .errors import SemanticStoreAuthError
from ..utils.logger import logger


class Mem0HttpClient(SemanticMemoryClient):
    """基于 Mem0 托管服务的语义记忆客户端

    会话隔离使用 Mem0 的 user_id。非 2xx 响应抛出 aiohttp.ClientResponseError，
    由 SemanticMemoryAdapter 统一包装。
    """

    supports_update = True

    DEFAULT_API_BASE = "https://api.mem0.ai"
    DEFAULT_TIMEOUT = 30  # seconds

    def __init__(
        self,
        api_key: Optional[str],
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if not api_key:
            raise SemanticStoreAuthError()
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "application/json",
        }

    async def add(self, content: str, *, scope_key: str, metadata: Dict[str, Any]) -> Any:
        role = metadata.get("role", "user")
        payload = {
            "messages": [{"role": role, "content": content}],
            "user_id": scope_key,
            "metadata": metadata,
        }
        return await self._request("POST", "/v1/memories/", json=payload)

    async def search(self, query: str, *, scope_key: str, limit: int) -> Any:
        payload = {"query": query, "user_id": scope_key, "limit": limit}
        return await self._request("POST", "/v1/memories/search/", json=payload)

    async def get_all(self, *, scope_key: str) -> Any:
        return await self._request("GET", "/v1/memories/", params={"user_id": scope_key})

    async def delete(self, memory_id: str) -> None:
        await self._request("DELETE", f"/v1/memories/{memory_id}/")

    async def update(self, memory_id: str, content: str) -> Any:
        return await self._request("PUT", f"/v1/memories/{memory_id}/", json={"text": content})

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.api_base}{path}"
        timeout_config = aiohttp.ClientTimeout(total=self.timeout)
        logger.debug(f"Mem0 请求: {method} {url}")

        async with aiohttp.ClientSession(timeout=timeout_config, headers=self.headers) as session:
            async with session.request(method, url, json=json, params=params) as response:
                if response.status in (401, 403):
                    raise SemanticStoreAuthError(f"Mem0 拒绝了 API key (HTTP {response.status})")
                response.raise_for_status()
                if response.status == 204 or response.content_length == 0:
                    return None
                return await response.json(content_type=None)
