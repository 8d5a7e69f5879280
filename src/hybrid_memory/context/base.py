"""上下文构建基础类型"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

from ..memory.models import Message, MemoryRecord


@dataclass(frozen=True)
class ContextBuildOptions:
    """上下文构建选项"""
    max_tokens: int = 4096
    max_messages: int = 20  # 从会话读取的最近消息数
    include_persona_prompt: bool = True
    include_memories: bool = True
    memory_limit: int = 5  # 语义检索条数

    def merge(self, overrides: Optional[Dict[str, Any]] = None) -> "ContextBuildOptions":
        """合并单次调用的覆盖项"""
        if not overrides:
            return self
        return replace(self, **overrides)


@dataclass(frozen=True)
class BuildContext:
    """上下文构建结果"""
    system_prompt: str
    relevant_memories: Tuple[MemoryRecord, ...]
    recent_messages: Tuple[Message, ...]
    full_context: str
    token_count: int
    truncated: bool = False
