"""上下文构建器

整合人设提示词 + 语义记忆 + 最近对话 + 当前消息，并在 token 预算内裁剪。
裁剪时人设、记忆和当前消息整段保留，只从最早的对话开始丢弃。
"""

from typing import Any, Dict, List, Optional, Sequence

from .base import BuildContext, ContextBuildOptions
from .persona import PersonaProvider
from .utils import context_parts, estimate_tokens, fit_entries
from ..memory.errors import ContextBuildError, MemoryValidationError
from ..memory.models import Message, MemoryRecord
from ..memory.semantic_adapter import SemanticMemoryAdapter
from ..memory.session_memory import SessionMemory
from ..utils.logger import logger


class ContextBuilder:
    """负责构建对话上下文"""

    def __init__(
        self,
        persona: Optional[PersonaProvider] = None,
        options: Optional[ContextBuildOptions] = None,
    ):
        self.persona = persona
        self.default_options = options or ContextBuildOptions()

    async def build(
        self,
        session: SessionMemory,
        adapter: Optional[SemanticMemoryAdapter],
        current_message: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> BuildContext:
        """构建对话上下文（含语义检索）

        Raises:
            MemoryValidationError: current_message 为空或不是字符串
            ContextBuildError: 其它任何失败（人设提供者、语义检索等）
        """
        self._validate_current_message(current_message)

        try:
            opts = self.default_options.merge(options)
            system_prompt = self._system_prompt(opts)
            memories: List[MemoryRecord] = []
            if opts.include_memories and adapter is not None:
                memories = await adapter.search_memory(current_message, opts.memory_limit)
            recent = session.get_recent(opts.max_messages)
            return self._assemble(session.session_id, system_prompt, memories, recent, current_message, opts)
        except MemoryValidationError:
            raise
        except Exception as e:
            logger.error(f"上下文构建失败: session={session.session_id}, error={e}", exc_info=True)
            raise ContextBuildError(session.session_id, str(e), e) from e

    def build_sync(
        self,
        session: SessionMemory,
        current_message: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> BuildContext:
        """构建简化的上下文（不做语义检索）"""
        self._validate_current_message(current_message)

        try:
            opts = self.default_options.merge(options)
            system_prompt = self._system_prompt(opts)
            recent = session.get_recent(opts.max_messages)
            return self._assemble(session.session_id, system_prompt, [], recent, current_message, opts)
        except MemoryValidationError:
            raise
        except Exception as e:
            logger.error(f"上下文构建失败: session={session.session_id}, error={e}", exc_info=True)
            raise ContextBuildError(session.session_id, str(e), e) from e

    def _validate_current_message(self, current_message: Any) -> None:
        if not isinstance(current_message, str) or not current_message:
            raise MemoryValidationError(
                "currentMessage", "Current message must be a non-empty string", current_message
            )

    def _system_prompt(self, opts: ContextBuildOptions) -> str:
        if not opts.include_persona_prompt or self.persona is None:
            return ""
        return self.persona.get_system_prompt() or ""

    def _assemble(
        self,
        session_id: str,
        system_prompt: str,
        memories: Sequence[MemoryRecord],
        recent: Sequence[Message],
        current_message: str,
        opts: ContextBuildOptions,
    ) -> BuildContext:
        head, entries, tail = context_parts(system_prompt, memories, recent, current_message)
        full_context = "\n".join([head, *entries, tail])
        estimated = estimate_tokens(full_context)

        truncated = estimated > opts.max_tokens
        if truncated:
            kept = fit_entries(head, entries, tail, opts.max_tokens)
            full_context = "\n".join([head, *kept, tail])
            logger.info(
                f"上下文超出预算: session={session_id}, {estimated}/{opts.max_tokens} tokens, "
                f"保留 {len(kept)}/{len(entries)} 条对话"
            )

        token_count = estimate_tokens(full_context)
        logger.debug(f"上下文构建完成: session={session_id}, tokens={token_count}")
        return BuildContext(
            system_prompt=system_prompt,
            relevant_memories=tuple(memories),
            recent_messages=tuple(recent),
            full_context=full_context,
            token_count=token_count,
            truncated=truncated,
        )
