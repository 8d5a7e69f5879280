"""会话瞬时记忆

单个会话的消息日志，进程内存级别：
- 不可变值类型，每次修改返回新实例
- 消息数量有上限（默认保留最近 100 条，超出时丢弃最旧的）
- 支持按角色、按时间范围查询
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple, Union

from .errors import InvalidMessageError, validate_session_id
from .models import Message, MessageInput, SessionConfig, SessionState, VALID_ROLES


@dataclass(frozen=True)
class SessionMemory:
    """单个会话的有界消息日志"""
    session_id: str
    config: SessionConfig
    created_at: datetime
    updated_at: datetime
    _messages: Tuple[Message, ...] = field(default=(), repr=False)

    @classmethod
    def create(cls, session_id: str, config: Optional[SessionConfig] = None) -> "SessionMemory":
        """创建空会话

        Raises:
            InvalidSessionIdError: session_id 为空或只含空白
        """
        validate_session_id(session_id)
        now = datetime.now()
        return cls(
            session_id=session_id,
            config=config or SessionConfig(),
            created_at=now,
            updated_at=now,
        )

    def append(self, message: Union[MessageInput, Message]) -> "SessionMemory":
        """追加一条消息，返回新实例（原实例不变）

        Raises:
            InvalidMessageError: 内容为空/非字符串，或角色不在 user/assistant/system 中
        """
        if not isinstance(message, (MessageInput, Message)):
            raise InvalidMessageError("message must be a MessageInput", message)
        if not isinstance(message.content, str) or not message.content:
            raise InvalidMessageError("content must be a non-empty string", message)
        if message.role not in VALID_ROLES:
            raise InvalidMessageError(f"role must be one of: {', '.join(VALID_ROLES)}", message)

        new_message = Message(
            role=message.role,
            content=message.content,
            timestamp=message.timestamp or datetime.now(),
        )
        messages = self._messages + (new_message,)
        # FIFO 淘汰最旧消息
        if len(messages) > self.config.max_messages:
            messages = messages[-self.config.max_messages:]
        return self._with_messages(messages)

    def append_many(self, messages: Iterable[Union[MessageInput, Message]]) -> "SessionMemory":
        """批量追加消息"""
        result = self
        for message in messages:
            result = result.append(message)
        return result

    @property
    def messages(self) -> List[Message]:
        """所有消息（副本）"""
        return list(self._messages)

    def get_recent(self, count: int) -> List[Message]:
        """获取最近 count 条消息"""
        if count <= 0:
            return []
        return list(self._messages[-count:])

    def get_by_role(self, role: str) -> List[Message]:
        return [m for m in self._messages if m.role == role]

    def get_by_time_range(self, start: datetime, end: datetime) -> List[Message]:
        """按时间范围（闭区间）获取消息"""
        if start > end:
            return []
        return [m for m in self._messages if start <= m.timestamp <= end]

    def clear(self) -> "SessionMemory":
        """清空消息，保留 session_id / config / created_at"""
        return self._with_messages(())

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        elapsed_ms = ((now or datetime.now()) - self.updated_at).total_seconds() * 1000
        return elapsed_ms > self.config.ttl

    @property
    def message_count(self) -> int:
        return len(self._messages)

    def is_empty(self) -> bool:
        return not self._messages

    @property
    def first_message(self) -> Optional[Message]:
        return self._messages[0] if self._messages else None

    @property
    def last_message(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    @property
    def state(self) -> SessionState:
        return SessionState(
            session_id=self.session_id,
            messages=self._messages,
            created_at=self.created_at,
            updated_at=self.updated_at,
            ttl=self.config.ttl,
            max_messages=self.config.max_messages,
        )

    def _with_messages(self, messages: Tuple[Message, ...]) -> "SessionMemory":
        return replace(self, _messages=tuple(messages), updated_at=datetime.now())
