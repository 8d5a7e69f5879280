"""上下文构建使用示例"""

import asyncio

from hybrid_memory import HybridMemoryEngine, StaticPersonaProvider


def create_sample_conversation(engine: HybridMemoryEngine, session_id: str):
    """写入示例对话"""
    turns = [
        ("user", "你好"),
        ("assistant", "哼，有什么事？"),
        ("user", "你在研究什么？"),
        ("assistant", "时间旅行理论...这与你无关吧。"),
    ]
    for role, content in turns:
        engine.add_session_message(session_id, content, role)


async def main():
    persona = StaticPersonaProvider("你是牧濑红莉栖，一名18岁的天才神经科学家。")
    engine = HybridMemoryEngine.with_persona(persona)

    session_id = engine.create_session()
    create_sample_conversation(engine, session_id)

    # 1. 默认预算
    result = await engine.build_context(session_id, "我觉得时间旅行很酷")
    print("=" * 60)
    print(result.full_context)
    print(f"\ntokens: {result.token_count}")

    # 2. 小预算，较早的对话会被裁剪
    result = engine.build_context_sync(session_id, "我觉得时间旅行很酷", {"max_tokens": 60})
    print("=" * 60)
    print(result.full_context)
    print(f"\ntokens: {result.token_count}, truncated: {result.truncated}")

    print("=" * 60)
    print(engine.get_stats())
    engine.destroy()


if __name__ == "__main__":
    asyncio.run(main())
