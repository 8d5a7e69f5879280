"""混合记忆引擎

记忆系统的统一入口：
- 瞬时记忆 (SessionMemory)：当前会话消息，进程内存
- 短期记忆 (SemanticMemoryAdapter)：外部语义存储，按会话懒加载
- 上下文构建 (ContextBuilder)：人设 + 记忆 + 最近对话，受 token 预算约束

引擎独占两个注册表（session_id -> SessionMemory / SemanticMemoryAdapter），
所有写入在同一把锁内完成“读取当前值 -> 计算新值 -> 发布”。
"""

import threading
import uuid
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .clients import SemanticMemoryClient
from .errors import MemoryValidationError, SessionNotFoundError, validate_session_id
from .models import (
    DEFAULT_IMPORTANCE,
    Message,
    MessageInput,
    MemoryRecord,
    SessionConfig,
    SessionState,
    now_ms,
)
from .semantic_adapter import SemanticMemoryAdapter
from .session_memory import SessionMemory
from ..context.base import BuildContext, ContextBuildOptions
from ..context.builder import ContextBuilder
from ..context.persona import PersonaProvider
from ..utils.logger import logger

if TYPE_CHECKING:
    from ..config import Settings


class HybridMemoryEngine:
    """提供统一的记忆管理接口"""

    def __init__(
        self,
        session_config: Optional[SessionConfig] = None,
        context_options: Optional[ContextBuildOptions] = None,
        persona: Optional[PersonaProvider] = None,
        semantic_client: Optional[SemanticMemoryClient] = None,
        default_importance: float = DEFAULT_IMPORTANCE,
    ):
        self.session_config = session_config or SessionConfig()
        self.context_options = context_options or ContextBuildOptions()
        self.persona = persona
        self.semantic_client = semantic_client
        self.default_importance = default_importance
        self.context_builder = ContextBuilder(persona, self.context_options)

        self._sessions: Dict[str, SessionMemory] = {}
        self._adapters: Dict[str, SemanticMemoryAdapter] = {}
        self._lock = threading.RLock()

    @classmethod
    def with_persona(cls, persona: PersonaProvider, **kwargs: Any) -> "HybridMemoryEngine":
        return cls(persona=persona, **kwargs)

    @classmethod
    def with_semantic_client(cls, client: SemanticMemoryClient, **kwargs: Any) -> "HybridMemoryEngine":
        return cls(semantic_client=client, **kwargs)

    @classmethod
    def create(
        cls,
        persona: PersonaProvider,
        client: SemanticMemoryClient,
        **kwargs: Any,
    ) -> "HybridMemoryEngine":
        return cls(persona=persona, semantic_client=client, **kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        persona: Optional[PersonaProvider] = None,
        semantic_client: Optional[SemanticMemoryClient] = None,
    ) -> "HybridMemoryEngine":
        """根据配置创建引擎，配置了 Mem0 API key 时自动创建 HTTP 客户端"""
        logger.set_level(settings.log_level)
        if semantic_client is None and settings.mem0_api_key:
            from .mem0_client import Mem0HttpClient
            semantic_client = Mem0HttpClient(
                settings.mem0_api_key,
                api_base=settings.mem0_api_base,
                timeout=settings.mem0_timeout,
            )
        return cls(
            session_config=settings.session_config(),
            context_options=settings.context_options(),
            persona=persona,
            semantic_client=semantic_client,
            default_importance=settings.default_importance,
        )

    # ------------------------------------------------------------------
    # 会话管理
    # ------------------------------------------------------------------

    def create_session(self, session_id: Optional[str] = None) -> str:
        """创建新会话，未指定 ID 时自动生成"""
        sid = self._generate_session_id() if session_id is None else session_id
        validate_session_id(sid)

        with self._lock:
            if sid in self._sessions:
                raise MemoryValidationError("sessionId", f"Session already exists: {sid}", sid)
            self._sessions[sid] = SessionMemory.create(sid, self.session_config)

        logger.info(f"创建会话: {sid}")
        return sid

    def get_session(self, session_id: str) -> Optional[SessionMemory]:
        validate_session_id(session_id)
        return self._sessions.get(session_id)

    def has_session(self, session_id: str) -> bool:
        validate_session_id(session_id)
        return session_id in self._sessions

    def delete_session(self, session_id: str) -> bool:
        """删除会话及其语义记忆适配器"""
        validate_session_id(session_id)
        with self._lock:
            self._adapters.pop(session_id, None)
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info(f"删除会话: {session_id}")
        return removed

    def list_sessions(self) -> List[str]:
        return list(self._sessions.keys())

    def cleanup_expired_sessions(self) -> int:
        """执行一次过期清理，返回清理的会话数"""
        with self._lock:
            expired = [sid for sid, session in self._sessions.items() if session.is_expired()]
            for sid in expired:
                del self._sessions[sid]
                self._adapters.pop(sid, None)

        if expired:
            logger.info(f"清理过期会话: {len(expired)} 个")
        return len(expired)

    def destroy(self) -> None:
        """清空所有会话和适配器"""
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
            self._adapters.clear()
        logger.info(f"引擎已销毁，释放 {count} 个会话")

    # ------------------------------------------------------------------
    # 消息操作
    # ------------------------------------------------------------------

    def add_message(self, session_id: str, message: MessageInput) -> SessionMemory:
        validate_session_id(session_id)
        if not isinstance(message, MessageInput):
            raise MemoryValidationError("message", "Message must be a MessageInput", message)
        self._require_content(message.content)

        with self._lock:
            session = self._get_session_or_raise(session_id)
            updated = session.append(message)
            self._sessions[session_id] = updated

        logger.debug(f"追加消息: session={session_id}, role={message.role}, count={updated.message_count}")
        return updated

    def add_session_message(self, session_id: str, content: str, role: str = "user") -> SessionMemory:
        validate_session_id(session_id)
        self._require_content(content)
        return self.add_message(session_id, MessageInput(role=role, content=content))

    def get_messages(self, session_id: str) -> List[Message]:
        validate_session_id(session_id)
        return self._get_session_or_raise(session_id).messages

    def get_recent_messages(self, session_id: str, count: int = 20) -> List[Message]:
        validate_session_id(session_id)
        return self._get_session_or_raise(session_id).get_recent(count)

    def clear_session(self, session_id: str) -> SessionMemory:
        validate_session_id(session_id)
        with self._lock:
            cleared = self._get_session_or_raise(session_id).clear()
            self._sessions[session_id] = cleared
        logger.info(f"清空会话消息: {session_id}")
        return cleared

    # ------------------------------------------------------------------
    # 语义记忆
    # ------------------------------------------------------------------

    async def add_memory(
        self,
        session_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        adapter = self._adapter_for(session_id)
        if adapter is None:
            raise MemoryValidationError("semanticClient", "Semantic memory client not configured")
        return await adapter.add_memory(content, metadata)

    async def search_memory(self, session_id: str, query: str, limit: int = 10) -> List[MemoryRecord]:
        adapter = self._adapter_for(session_id)
        if adapter is None:
            return []
        return await adapter.search_memory(query, limit)

    async def get_all_memories(self, session_id: str) -> List[MemoryRecord]:
        adapter = self._adapter_for(session_id)
        if adapter is None:
            return []
        return await adapter.get_all_memories()

    async def delete_memory(self, session_id: str, memory_id: str) -> None:
        adapter = self._adapter_for(session_id)
        if adapter is None:
            return
        await adapter.delete_memory(memory_id)

    async def update_memory(self, session_id: str, memory_id: str, content: str) -> None:
        adapter = self._adapter_for(session_id)
        if adapter is None:
            raise MemoryValidationError("semanticClient", "Semantic memory client not configured")
        await adapter.update_memory(memory_id, content)

    # ------------------------------------------------------------------
    # 上下文构建
    # ------------------------------------------------------------------

    async def build_context(
        self,
        session_id: str,
        current_message: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> BuildContext:
        validate_session_id(session_id)
        session = self._get_session_or_raise(session_id)
        # 不检索记忆时不创建适配器
        include_memories = (options or {}).get("include_memories", self.context_options.include_memories)
        adapter = self._adapter_for(session_id) if include_memories else None
        return await self.context_builder.build(session, adapter, current_message, options)

    def build_context_sync(
        self,
        session_id: str,
        current_message: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> BuildContext:
        validate_session_id(session_id)
        session = self._get_session_or_raise(session_id)
        return self.context_builder.build_sync(session, current_message, options)

    # ------------------------------------------------------------------
    # 状态
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "session_count": len(self._sessions),
                "short_term_memory_count": len(self._adapters),
                "total_messages": sum(s.message_count for s in self._sessions.values()),
            }

    def get_session_state(self, session_id: str) -> SessionState:
        validate_session_id(session_id)
        return self._get_session_or_raise(session_id).state

    # ------------------------------------------------------------------
    # 内部方法
    # ------------------------------------------------------------------

    def _require_content(self, content: Any) -> None:
        if not isinstance(content, str) or not content:
            raise MemoryValidationError("content", "Content must be a non-empty string", content)

    def _get_session_or_raise(self, session_id: str) -> SessionMemory:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _adapter_for(self, session_id: str) -> Optional[SemanticMemoryAdapter]:
        """校验会话并懒加载适配器；未配置语义客户端时返回 None"""
        validate_session_id(session_id)
        with self._lock:
            self._get_session_or_raise(session_id)
            if self.semantic_client is None:
                return None
            adapter = self._adapters.get(session_id)
            if adapter is None:
                adapter = SemanticMemoryAdapter(
                    self.semantic_client, session_id, self.default_importance
                )
                self._adapters[session_id] = adapter
                logger.debug(f"创建语义记忆适配器: {session_id}")
            return adapter

    def _generate_session_id(self) -> str:
        return f"session-{now_ms()}-{uuid.uuid4().hex[:7]}"
