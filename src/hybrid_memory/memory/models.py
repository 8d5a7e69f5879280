"""记忆系统数据模型"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional, Dict, Any, Tuple, get_args


MessageRole = Literal["user", "assistant", "system"]
VALID_ROLES: Tuple[str, ...] = get_args(MessageRole)

DEFAULT_MAX_MESSAGES = 100
DEFAULT_SESSION_TTL_MS = 3_600_000  # 1 小时
DEFAULT_IMPORTANCE = 0.5
DEFAULT_RELEVANCE_SCORE = 1.0


def now_ms() -> int:
    """当前时间（毫秒时间戳）"""
    return int(datetime.now().timestamp() * 1000)


@dataclass(frozen=True)
class Message:
    """会话中的一条消息（创建后不可变）"""
    role: MessageRole
    content: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class MessageInput:
    """待追加的消息，timestamp 缺省时取当前时间"""
    role: str
    content: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class SessionConfig:
    """会话配置

    ttl 单位为毫秒
    """
    max_messages: int = DEFAULT_MAX_MESSAGES
    ttl: int = DEFAULT_SESSION_TTL_MS


@dataclass(frozen=True)
class SessionState:
    """会话状态快照"""
    session_id: str
    messages: Tuple[Message, ...]
    created_at: datetime
    updated_at: datetime
    ttl: int
    max_messages: int

    @property
    def message_count(self) -> int:
        return len(self.messages)


@dataclass(frozen=True)
class MemoryMetadata:
    """语义记忆元数据

    timestamp 为毫秒时间戳，便于与远端存储交换
    """
    timestamp: int
    session_id: str
    importance: float = DEFAULT_IMPORTANCE
    role: str = "user"
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d.update({
            "timestamp": self.timestamp,
            "importance": self.importance,
            "role": self.role,
            "sessionId": self.session_id,
        })
        return d


@dataclass(frozen=True)
class MemoryRecord:
    """规范化后的语义记忆记录"""
    id: str
    content: str
    metadata: MemoryMetadata
    relevance_score: float = DEFAULT_RELEVANCE_SCORE
