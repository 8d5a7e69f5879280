"""语义记忆适配器

封装外部语义记忆客户端：
- 按会话隔离（scope_key = session_id）
- 把不同形态的远端响应统一为 MemoryRecord
- 客户端抛出的异常统一包装为 SemanticStoreError
"""

import uuid
from typing import Any, Dict, List, Optional

from .clients import (
    SemanticMemoryClient,
    RawMemoryRecord,
    RecordListResponse,
    SingleRecordResponse,
    decode_add_response,
    decode_records,
)
from .errors import (
    MemoryValidationError,
    SemanticStoreError,
    UnsupportedOperationError,
    validate_session_id,
)
from .models import (
    DEFAULT_IMPORTANCE,
    DEFAULT_RELEVANCE_SCORE,
    MemoryMetadata,
    MemoryRecord,
    now_ms,
)
from ..utils.logger import logger

_KNOWN_METADATA_KEYS = {"timestamp", "importance", "role", "sessionId", "session_id"}


def generate_memory_id() -> str:
    return f"mem-{now_ms()}-{uuid.uuid4().hex[:8]}"


def _require_text(field: str, value: Any, reason: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise MemoryValidationError(field, reason, value)


class SemanticMemoryAdapter:
    """会话级语义记忆门面"""

    def __init__(
        self,
        client: SemanticMemoryClient,
        session_id: str,
        default_importance: float = DEFAULT_IMPORTANCE,
    ):
        validate_session_id(session_id)
        if client is None:
            raise MemoryValidationError("client", "Semantic memory client is required")

        self.client = client
        self.session_id = session_id
        self.default_importance = default_importance

    async def add_memory(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """添加记忆，返回记忆 ID"""
        _require_text("content", content, "Content must be a non-empty string")

        merged: Dict[str, Any] = {
            "timestamp": now_ms(),
            "importance": self.default_importance,
            "role": "user",
        }
        merged.update(metadata or {})
        merged["sessionId"] = self.session_id

        try:
            raw = await self.client.add(content, scope_key=self.session_id, metadata=merged)
            response = decode_add_response(raw)
        except Exception as e:
            raise self._wrap("add", e) from e

        if isinstance(response, RecordListResponse) and response.records:
            return response.records[0].id or generate_memory_id()
        if isinstance(response, SingleRecordResponse) and response.record.id:
            return response.record.id
        return generate_memory_id()

    async def search_memory(self, query: str, limit: int = 10) -> List[MemoryRecord]:
        """语义检索本会话的记忆"""
        _require_text("query", query, "Query must be a non-empty string")

        try:
            raw = await self.client.search(query, scope_key=self.session_id, limit=limit)
            records = decode_records(raw)
        except Exception as e:
            raise self._wrap("search", e) from e

        return [self._to_record(r) for r in records]

    async def get_all_memories(self) -> List[MemoryRecord]:
        try:
            raw = await self.client.get_all(scope_key=self.session_id)
            records = decode_records(raw)
        except Exception as e:
            raise self._wrap("getAll", e) from e

        return [self._to_record(r) for r in records]

    async def delete_memory(self, memory_id: str) -> None:
        _require_text("id", memory_id, "Memory ID must be a non-empty string")

        try:
            await self.client.delete(memory_id)
        except Exception as e:
            raise self._wrap("delete", e) from e

    async def update_memory(self, memory_id: str, content: str) -> None:
        _require_text("id", memory_id, "Memory ID must be a non-empty string")
        _require_text("content", content, "Content must be a non-empty string")

        if not self.client.supports_update:
            raise UnsupportedOperationError("update", "Update operation not supported by client")

        try:
            await self.client.update(memory_id, content)
        except Exception as e:
            raise self._wrap("update", e) from e

    def _wrap(self, operation: str, error: Exception) -> SemanticStoreError:
        logger.warning(f"语义记忆操作失败: session={self.session_id}, op={operation}, error={error}")
        return SemanticStoreError(operation, str(error) or type(error).__name__, error)

    def _to_record(self, raw: RawMemoryRecord) -> MemoryRecord:
        """把远端记录转换为 MemoryRecord"""
        meta = raw.metadata or {}
        metadata = MemoryMetadata(
            timestamp=meta.get("timestamp", now_ms()),
            importance=meta.get("importance", DEFAULT_IMPORTANCE),
            role=meta.get("role", "user"),
            session_id=meta.get("sessionId") or raw.user_id or self.session_id,
            extra={k: v for k, v in meta.items() if k not in _KNOWN_METADATA_KEYS},
        )
        return MemoryRecord(
            id=raw.id or "",
            content=raw.text,
            metadata=metadata,
            relevance_score=raw.score if raw.score is not None else DEFAULT_RELEVANCE_SCORE,
        )
