"""记忆系统模块

核心组件：
- SessionMemory: 会话瞬时记忆（不可变、有界）
- SemanticMemoryAdapter: 外部语义记忆存储的会话级门面
- Mem0HttpClient: Mem0 平台客户端
- HybridMemoryEngine: 统一入口
"""

from .models import (
    Message,
    MessageInput,
    MessageRole,
    SessionConfig,
    SessionState,
    MemoryMetadata,
    MemoryRecord,
)
from .errors import (
    MemoryEngineError,
    SessionNotFoundError,
    InvalidSessionIdError,
    InvalidMessageError,
    MemoryValidationError,
    SemanticStoreError,
    SemanticStoreAuthError,
    ContextBuildError,
    UnsupportedOperationError,
)
from .session_memory import SessionMemory
from .clients import SemanticMemoryClient
from .semantic_adapter import SemanticMemoryAdapter
from .mem0_client import Mem0HttpClient
from .engine import HybridMemoryEngine

__all__ = [
    "Message",
    "MessageInput",
    "MessageRole",
    "SessionConfig",
    "SessionState",
    "MemoryMetadata",
    "MemoryRecord",
    "MemoryEngineError",
    "SessionNotFoundError",
    "InvalidSessionIdError",
    "InvalidMessageError",
    "MemoryValidationError",
    "SemanticStoreError",
    "SemanticStoreAuthError",
    "ContextBuildError",
    "UnsupportedOperationError",
    "SessionMemory",
    "SemanticMemoryClient",
    "SemanticMemoryAdapter",
    "Mem0HttpClient",
    "HybridMemoryEngine",
]
