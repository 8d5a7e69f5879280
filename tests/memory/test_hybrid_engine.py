"""HybridMemoryEngine 单元测试"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from conftest import FakeSemanticClient, RecordingPersona
from hybrid_memory.memory import (
    ContextBuildError,
    HybridMemoryEngine,
    InvalidMessageError,
    InvalidSessionIdError,
    MemoryValidationError,
    MessageInput,
    SessionConfig,
    SessionNotFoundError,
)
from hybrid_memory.memory.session_memory import SessionMemory

SESSION_ID = "session-test-123"
INVALID_IDS = ["", "   "]


@pytest.fixture
def engine():
    return HybridMemoryEngine()


@pytest.fixture
def full_engine(fake_client, persona):
    return HybridMemoryEngine.create(persona, fake_client)


class TestSessionManagement:

    def test_starts_empty(self, engine):
        assert engine.list_sessions() == []
        assert engine.get_stats() == {"session_count": 0, "short_term_memory_count": 0, "total_messages": 0}

    def test_create_with_generated_id(self, engine):
        sid = engine.create_session()
        assert sid.startswith("session-")
        assert engine.has_session(sid)

    def test_create_with_custom_id(self, engine):
        assert engine.create_session(SESSION_ID) == SESSION_ID
        assert isinstance(engine.get_session(SESSION_ID), SessionMemory)

    def test_duplicate_id(self, engine):
        engine.create_session(SESSION_ID)
        with pytest.raises(MemoryValidationError, match="already exists"):
            engine.create_session(SESSION_ID)

    def test_get_missing_session_returns_none(self, engine):
        assert engine.get_session("nope") is None
        assert engine.has_session("nope") is False

    def test_delete_session(self, engine):
        engine.create_session(SESSION_ID)
        assert engine.delete_session(SESSION_ID) is True
        assert engine.delete_session(SESSION_ID) is False
        assert engine.list_sessions() == []

    def test_list_sessions(self, engine):
        for sid in ["session-user-1", "session-user-2", "session-user-3"]:
            engine.create_session(sid)
        assert sorted(engine.list_sessions()) == ["session-user-1", "session-user-2", "session-user-3"]

    def test_session_config_applied(self):
        engine = HybridMemoryEngine(session_config=SessionConfig(max_messages=3, ttl=10))
        engine.create_session(SESSION_ID)
        assert engine.get_session_state(SESSION_ID).max_messages == 3

    def test_cleanup_expired_sessions(self, fake_client):
        engine = HybridMemoryEngine(session_config=SessionConfig(ttl=1000), semantic_client=fake_client)
        engine.create_session("old")
        engine.create_session("fresh")
        asyncio.run(engine.get_all_memories("old"))

        old = engine.get_session("old")
        with patch.object(SessionMemory, "is_expired", lambda self: self is old):
            assert engine.cleanup_expired_sessions() == 1

        assert engine.list_sessions() == ["fresh"]
        assert engine.get_stats()["short_term_memory_count"] == 0
        assert engine.cleanup_expired_sessions() == 0

    def test_destroy(self, full_engine):
        full_engine.create_session(SESSION_ID)
        full_engine.add_session_message(SESSION_ID, "hi")
        full_engine.destroy()

        assert full_engine.list_sessions() == []
        with pytest.raises(SessionNotFoundError):
            full_engine.get_messages(SESSION_ID)
        with pytest.raises(SessionNotFoundError):
            full_engine.add_session_message(SESSION_ID, "hi")
        with pytest.raises(SessionNotFoundError):
            full_engine.build_context_sync(SESSION_ID, "hi")
        with pytest.raises(SessionNotFoundError):
            asyncio.run(full_engine.search_memory(SESSION_ID, "hi"))


class TestMessages:

    def test_add_messages(self, engine):
        engine.create_session(SESSION_ID)
        engine.add_session_message(SESSION_ID, "你好，Kurisu", "user")
        updated = engine.add_message(SESSION_ID, MessageInput(role="assistant", content="哼，有什么事吗？"))

        assert updated.message_count == 2
        assert engine.get_session(SESSION_ID) is updated
        assert [m.role for m in engine.get_messages(SESSION_ID)] == ["user", "assistant"]

    def test_add_is_copy_on_write(self, engine):
        engine.create_session(SESSION_ID)
        before = engine.get_session(SESSION_ID)
        engine.add_session_message(SESSION_ID, "hi")
        assert before.message_count == 0
        assert engine.get_session(SESSION_ID).message_count == 1

    def test_get_messages_does_not_leak_state(self, engine):
        engine.create_session(SESSION_ID)
        engine.add_session_message(SESSION_ID, "hi")
        engine.get_messages(SESSION_ID).clear()
        assert len(engine.get_messages(SESSION_ID)) == 1

    def test_recent_messages(self, engine):
        engine.create_session(SESSION_ID)
        for i in range(30):
            engine.add_session_message(SESSION_ID, f"m{i}")
        assert len(engine.get_recent_messages(SESSION_ID)) == 20
        assert [m.content for m in engine.get_recent_messages(SESSION_ID, 2)] == ["m28", "m29"]

    def test_overflow(self):
        engine = HybridMemoryEngine(session_config=SessionConfig(max_messages=100))
        engine.create_session(SESSION_ID)
        for i in range(1, 151):
            engine.add_session_message(SESSION_ID, f"message {i}")
        messages = engine.get_messages(SESSION_ID)
        assert len(messages) == 100
        assert messages[0].content == "message 51"
        assert messages[-1].content == "message 150"

    def test_clear_session(self, engine):
        engine.create_session(SESSION_ID)
        engine.add_session_message(SESSION_ID, "hi")
        cleared = engine.clear_session(SESSION_ID)
        assert cleared.is_empty()
        assert engine.get_messages(SESSION_ID) == []

    def test_empty_content(self, engine):
        engine.create_session(SESSION_ID)
        with pytest.raises(MemoryValidationError):
            engine.add_session_message(SESSION_ID, "")
        with pytest.raises(MemoryValidationError):
            engine.add_message(SESSION_ID, MessageInput(role="user", content=""))

    def test_invalid_role(self, engine):
        engine.create_session(SESSION_ID)
        with pytest.raises(InvalidMessageError):
            engine.add_session_message(SESSION_ID, "hi", "robot")
        assert engine.get_messages(SESSION_ID) == []

    def test_unknown_session(self, engine):
        with pytest.raises(SessionNotFoundError):
            engine.add_session_message("ghost", "hi")
        with pytest.raises(SessionNotFoundError):
            engine.get_recent_messages("ghost")
        with pytest.raises(SessionNotFoundError):
            engine.clear_session("ghost")

    def test_concurrent_appends_not_lost(self, engine):
        """测试：多线程并发追加不会丢失消息"""
        engine.create_session(SESSION_ID)
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda i: engine.add_session_message(SESSION_ID, f"m{i}"), range(80)))
        assert len(engine.get_messages(SESSION_ID)) == 80

    def test_stats(self, engine):
        engine.create_session("a")
        engine.create_session("b")
        engine.add_session_message("a", "1")
        engine.add_session_message("a", "2")
        engine.add_session_message("b", "3")
        assert engine.get_stats() == {"session_count": 2, "short_term_memory_count": 0, "total_messages": 3}


class TestSemanticMemory:

    @pytest.mark.asyncio
    async def test_add_and_search(self, full_engine):
        full_engine.create_session(SESSION_ID)
        memory_id = await full_engine.add_memory(SESSION_ID, "User mentioned El Psy Kongroo", {"importance": 0.95})
        results = await full_engine.search_memory(SESSION_ID, "Kongroo")

        assert memory_id == "mem-1"
        assert [r.id for r in results] == ["mem-1"]
        assert results[0].metadata.importance == 0.95
        assert full_engine.get_stats()["short_term_memory_count"] == 1

    @pytest.mark.asyncio
    async def test_adapter_created_lazily_and_reused(self, full_engine):
        full_engine.create_session(SESSION_ID)
        assert full_engine.get_stats()["short_term_memory_count"] == 0
        await full_engine.get_all_memories(SESSION_ID)
        await full_engine.get_all_memories(SESSION_ID)
        assert full_engine.get_stats()["short_term_memory_count"] == 1

    @pytest.mark.asyncio
    async def test_isolated_by_session(self, full_engine):
        full_engine.create_session("a")
        full_engine.create_session("b")
        await full_engine.add_memory("a", "time travel")
        assert await full_engine.search_memory("b", "time") == []
        assert len(await full_engine.search_memory("a", "time")) == 1

    @pytest.mark.asyncio
    async def test_delete_and_update(self, full_engine):
        full_engine.create_session(SESSION_ID)
        memory_id = await full_engine.add_memory(SESSION_ID, "old")
        await full_engine.update_memory(SESSION_ID, memory_id, "new")
        assert [r.content for r in await full_engine.get_all_memories(SESSION_ID)] == ["new"]
        await full_engine.delete_memory(SESSION_ID, memory_id)
        assert await full_engine.get_all_memories(SESSION_ID) == []

    @pytest.mark.asyncio
    async def test_without_client(self, engine):
        """测试：未配置语义客户端时检索返回空，添加报错"""
        engine.create_session(SESSION_ID)
        assert await engine.search_memory(SESSION_ID, "anything") == []
        assert await engine.get_all_memories(SESSION_ID) == []
        assert await engine.delete_memory(SESSION_ID, "m1") is None
        with pytest.raises(MemoryValidationError):
            await engine.add_memory(SESSION_ID, "hello")
        with pytest.raises(MemoryValidationError):
            await engine.update_memory(SESSION_ID, "m1", "hello")
        assert engine.get_stats()["short_term_memory_count"] == 0

    @pytest.mark.asyncio
    async def test_delete_session_discards_adapter(self, full_engine):
        full_engine.create_session(SESSION_ID)
        await full_engine.get_all_memories(SESSION_ID)
        full_engine.delete_session(SESSION_ID)
        assert full_engine.get_stats()["short_term_memory_count"] == 0


class TestContext:

    @pytest.mark.asyncio
    async def test_build_context(self, full_engine, persona):
        full_engine.create_session(SESSION_ID)
        full_engine.add_session_message(SESSION_ID, "你好", "user")
        full_engine.add_session_message(SESSION_ID, "有什么事", "assistant")
        await full_engine.add_memory(SESSION_ID, "Test subject matter")

        result = await full_engine.build_context(SESSION_ID, "Test message")
        text = result.full_context

        assert text.startswith(persona.prompt)
        assert text.index("你好") < text.index("有什么事") < text.index("Test message")
        assert len(result.relevant_memories) == 1

    @pytest.mark.asyncio
    async def test_build_context_without_memories_skips_adapter(self, full_engine, fake_client):
        full_engine.create_session(SESSION_ID)
        result = await full_engine.build_context(SESSION_ID, "hi", {"include_memories": False})

        assert result.relevant_memories == ()
        assert fake_client.calls == []
        assert full_engine.get_stats()["short_term_memory_count"] == 0

    def test_build_context_sync(self, full_engine, fake_client):
        full_engine.create_session(SESSION_ID)
        full_engine.add_session_message(SESSION_ID, "你好")
        result = full_engine.build_context_sync(SESSION_ID, "Test message")

        assert result.relevant_memories == ()
        assert "Test message" in result.full_context
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_build_context_without_components(self, engine):
        engine.create_session(SESSION_ID)
        result = await engine.build_context(SESSION_ID, "hi")
        assert result.system_prompt == ""
        assert result.full_context.endswith("User: hi")

    @pytest.mark.asyncio
    async def test_invalid_current_message(self, full_engine):
        full_engine.create_session(SESSION_ID)
        with pytest.raises(MemoryValidationError):
            await full_engine.build_context(SESSION_ID, "")

    @pytest.mark.asyncio
    async def test_store_failure_becomes_context_error(self, persona):
        class BrokenClient(FakeSemanticClient):
            async def search(self, query, *, scope_key, limit):
                raise ConnectionError("mem0 unreachable")

        engine = HybridMemoryEngine.create(persona, BrokenClient())
        engine.create_session(SESSION_ID)
        with pytest.raises(ContextBuildError) as exc_info:
            await engine.build_context(SESSION_ID, "hi")
        assert exc_info.value.session_id == SESSION_ID

    def test_factories(self, fake_client):
        persona = RecordingPersona("P")
        assert HybridMemoryEngine.with_persona(persona).persona is persona
        assert HybridMemoryEngine.with_semantic_client(fake_client).semantic_client is fake_client


class TestInvalidSessionIds:
    """非法会话 ID 在所有接受会话 ID 的操作上都报错"""

    @pytest.mark.parametrize("bad_id", INVALID_IDS)
    def test_sync_operations(self, full_engine, bad_id):
        operations = [
            lambda: full_engine.create_session(bad_id),
            lambda: full_engine.get_session(bad_id),
            lambda: full_engine.has_session(bad_id),
            lambda: full_engine.delete_session(bad_id),
            lambda: full_engine.add_session_message(bad_id, "hi"),
            lambda: full_engine.add_message(bad_id, MessageInput(role="user", content="hi")),
            lambda: full_engine.get_messages(bad_id),
            lambda: full_engine.get_recent_messages(bad_id),
            lambda: full_engine.clear_session(bad_id),
            lambda: full_engine.get_session_state(bad_id),
            lambda: full_engine.build_context_sync(bad_id, "hi"),
        ]
        for operation in operations:
            with pytest.raises(InvalidSessionIdError):
                operation()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", INVALID_IDS)
    async def test_async_operations(self, full_engine, bad_id):
        with pytest.raises(InvalidSessionIdError):
            await full_engine.build_context(bad_id, "hi")
        with pytest.raises(InvalidSessionIdError):
            await full_engine.add_memory(bad_id, "hi")
        with pytest.raises(InvalidSessionIdError):
            await full_engine.search_memory(bad_id, "hi")
        with pytest.raises(InvalidSessionIdError):
            await full_engine.get_all_memories(bad_id)
        with pytest.raises(InvalidSessionIdError):
            await full_engine.delete_memory(bad_id, "m1")
