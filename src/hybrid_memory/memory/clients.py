"""语义记忆客户端接口与响应解码"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import UnsupportedOperationError


class SemanticMemoryClient(ABC):
    """外部语义记忆存储客户端

    scope_key 用于按会话隔离记录。返回值为原始响应（dict / list），
    由 decode_add_response / decode_records 解码。
    """

    supports_update: bool = False

    @abstractmethod
    async def add(self, content: str, *, scope_key: str, metadata: Dict[str, Any]) -> Any:
        pass

    @abstractmethod
    async def search(self, query: str, *, scope_key: str, limit: int) -> Any:
        pass

    @abstractmethod
    async def get_all(self, *, scope_key: str) -> Any:
        pass

    @abstractmethod
    async def delete(self, memory_id: str) -> None:
        pass

    async def update(self, memory_id: str, content: str) -> Any:
        """可选能力，实现时需同时设置 supports_update = True"""
        raise UnsupportedOperationError("update")


class RawMemoryData(BaseModel):
    model_config = ConfigDict(extra="allow")

    memory: Optional[str] = None


class RawMemoryRecord(BaseModel):
    """远端返回的单条记录"""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    memory: Optional[str] = None
    data: Optional[RawMemoryData] = None
    score: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @property
    def text(self) -> str:
        if self.memory is not None:
            return self.memory
        if self.data is not None and self.data.memory is not None:
            return self.data.memory
        return ""


@dataclass(frozen=True)
class RecordListResponse:
    """记录列表：[...] 或 {"results": [...]}"""
    records: List[RawMemoryRecord]


@dataclass(frozen=True)
class SingleRecordResponse:
    """单条记录对象"""
    record: RawMemoryRecord


@dataclass(frozen=True)
class EmptyResponse:
    """无返回内容"""


AddResponse = Union[RecordListResponse, SingleRecordResponse, EmptyResponse]


def _validate_list(items: List[Any]) -> List[RawMemoryRecord]:
    return [RawMemoryRecord.model_validate(item) for item in items]


def decode_add_response(raw: Any) -> AddResponse:
    """解码 add 的返回值

    Raises:
        TypeError: 不属于已知的响应形态
    """
    if raw is None:
        return EmptyResponse()
    if isinstance(raw, list):
        return RecordListResponse(_validate_list(raw))
    if isinstance(raw, dict):
        if isinstance(raw.get("results"), list):
            return RecordListResponse(_validate_list(raw["results"]))
        return SingleRecordResponse(RawMemoryRecord.model_validate(raw))
    raise TypeError(f"unexpected add response type: {type(raw).__name__}")


def decode_records(raw: Any) -> List[RawMemoryRecord]:
    """解码 search / get_all 的返回值"""
    if raw is None:
        return []
    if isinstance(raw, list):
        return _validate_list(raw)
    if isinstance(raw, dict) and isinstance(raw.get("results"), list):
        return _validate_list(raw["results"])
    raise TypeError(f"unexpected records response type: {type(raw).__name__}")
