"""记忆系统错误定义"""

from datetime import datetime
from typing import Any, Optional


class MemoryEngineError(Exception):
    """记忆系统错误基类"""

    code = "MEMORY_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.timestamp = datetime.now()


class SessionNotFoundError(MemoryEngineError):
    """会话不存在"""

    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidSessionIdError(MemoryEngineError):
    """会话 ID 为空或只含空白"""

    code = "INVALID_SESSION_ID"

    def __init__(self, session_id: Any):
        super().__init__(
            f"Invalid session ID: must be a non-empty string, got: {session_id!r}"
        )
        self.session_id = session_id


class InvalidMessageError(MemoryEngineError):
    """消息角色或内容非法"""

    code = "INVALID_MESSAGE"

    def __init__(self, reason: str, message_data: Any = None):
        super().__init__(f"Invalid message: {reason}")
        self.message_data = message_data


class MemoryValidationError(MemoryEngineError):
    """参数校验失败，或缺少必需的外部依赖"""

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str, value: Any = None):
        super().__init__(f"Validation failed for {field}: {reason}")
        self.field = field
        self.value = value


class SemanticStoreError(MemoryEngineError):
    """语义记忆客户端调用失败（按操作名标记）"""

    code = "SEMANTIC_STORE_ERROR"

    def __init__(self, operation: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Semantic store error during {operation}: {message}")
        self.operation = operation
        self.cause = cause


class SemanticStoreAuthError(MemoryEngineError):
    """语义记忆服务缺少或拒绝 API key"""

    code = "SEMANTIC_STORE_AUTH_ERROR"

    def __init__(self, message: str = "Mem0 API key is required"):
        super().__init__(message)


class ContextBuildError(MemoryEngineError):
    """上下文构建过程中的非校验类失败"""

    code = "CONTEXT_BUILD_ERROR"

    def __init__(self, session_id: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to build context for session {session_id}: {message}")
        self.session_id = session_id
        self.cause = cause


class UnsupportedOperationError(MemoryEngineError):
    """客户端不支持请求的能力"""

    code = "UNSUPPORTED_OPERATION"

    def __init__(self, operation: str, message: Optional[str] = None):
        super().__init__(message or f"Operation not supported by client: {operation}")
        self.operation = operation


def validate_session_id(session_id: Any) -> str:
    """校验会话 ID，返回原值"""
    if not isinstance(session_id, str) or not session_id.strip():
        raise InvalidSessionIdError(session_id)
    return session_id
