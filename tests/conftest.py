"""测试公共夹具"""

import itertools
from typing import Any, Dict, List, Optional

import pytest

from hybrid_memory.memory.clients import SemanticMemoryClient
from hybrid_memory.context.persona import PersonaProvider


class FakeSemanticClient(SemanticMemoryClient):
    """进程内的语义记忆客户端，按关键字匹配并记录调用"""

    supports_update = True

    def __init__(self):
        self.store: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self._ids = itertools.count(1)

    async def add(self, content: str, *, scope_key: str, metadata: Dict[str, Any]) -> Any:
        self.calls.append(("add", content, scope_key, metadata))
        record = {
            "id": f"mem-{next(self._ids)}",
            "memory": content,
            "metadata": dict(metadata),
            "user_id": scope_key,
        }
        self.store.setdefault(scope_key, []).append(record)
        return [record]

    async def search(self, query: str, *, scope_key: str, limit: int) -> Any:
        self.calls.append(("search", query, scope_key, limit))
        hits = [
            dict(r, score=0.9)
            for r in self.store.get(scope_key, [])
            if any(word in r["memory"] for word in query.split())
        ]
        return hits[:limit]

    async def get_all(self, *, scope_key: str) -> Any:
        self.calls.append(("get_all", scope_key))
        return list(self.store.get(scope_key, []))

    async def delete(self, memory_id: str) -> None:
        self.calls.append(("delete", memory_id))
        for records in self.store.values():
            records[:] = [r for r in records if r["id"] != memory_id]

    async def update(self, memory_id: str, content: str) -> Any:
        self.calls.append(("update", memory_id, content))
        for records in self.store.values():
            for r in records:
                if r["id"] == memory_id:
                    r["memory"] = content
        return None


class ScriptedClient(SemanticMemoryClient):
    """返回预设响应或抛出预设异常"""

    def __init__(self, response: Any = None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.calls: List[tuple] = []

    async def _reply(self, *call: Any) -> Any:
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        return self.response

    async def add(self, content, *, scope_key, metadata):
        return await self._reply("add", content, scope_key, metadata)

    async def search(self, query, *, scope_key, limit):
        return await self._reply("search", query, scope_key, limit)

    async def get_all(self, *, scope_key):
        return await self._reply("get_all", scope_key)

    async def delete(self, memory_id):
        await self._reply("delete", memory_id)


class RecordingPersona(PersonaProvider):
    def __init__(self, prompt: str = "你是牧濑红莉栖，一名天才科学家。"):
        self.prompt = prompt
        self.calls = 0

    def get_system_prompt(self) -> str:
        self.calls += 1
        return self.prompt


class FailingPersona(PersonaProvider):
    def get_system_prompt(self) -> str:
        raise RuntimeError("persona store unavailable")


@pytest.fixture
def fake_client():
    return FakeSemanticClient()


@pytest.fixture
def persona():
    return RecordingPersona()
