"""上下文格式化、token 估算与裁剪"""

import math
import re
from functools import lru_cache
from typing import List, Sequence, Tuple

from ..memory.models import Message, MemoryRecord

MEMORIES_HEADER = "## Relevant Memories"
RECENT_HEADER = "## Recent Conversation"
CURRENT_HEADER = "## Current Message"

_CJK_PATTERN = re.compile(r"[\u4e00-\u9fa5]")


@lru_cache(maxsize=1000)
def estimate_tokens(text: str) -> int:
    """估算文本token数（中文字符 1.5 token，其余字符 4字符/token）"""
    if not text:
        return 0
    cjk_count = len(_CJK_PATTERN.findall(text))
    return math.ceil(cjk_count * 1.5 + (len(text) - cjk_count) / 4)


def format_memory(index: int, memory: MemoryRecord) -> str:
    # 四舍五入取整（.5 向上）
    percent = math.floor(memory.relevance_score * 100 + 0.5)
    return f"{index}. {memory.content} (relevance: {percent}%)"


def format_message(message: Message) -> str:
    return f"{message.role.capitalize()}: {message.content}"


def context_parts(
    system_prompt: str,
    memories: Sequence[MemoryRecord],
    messages: Sequence[Message],
    current_message: str,
) -> Tuple[str, List[str], str]:
    """拆分上下文为三段：固定头部、对话条目、当前消息

    头部包含人设、记忆和对话标题；"\\n".join([head, *entries, tail]) 即完整上下文。
    """
    head: List[str] = []
    if system_prompt:
        head.append(system_prompt)
    if memories:
        head.append(f"\n{MEMORIES_HEADER}")
        head.extend(format_memory(i, m) for i, m in enumerate(memories, start=1))
    head.append(f"\n{RECENT_HEADER}")

    entries = [format_message(m) for m in messages]
    tail = f"\n{CURRENT_HEADER}\nUser: {current_message}"
    return "\n".join(head), entries, tail


def format_context(
    system_prompt: str,
    memories: Sequence[MemoryRecord],
    messages: Sequence[Message],
    current_message: str,
) -> str:
    head, entries, tail = context_parts(system_prompt, memories, messages, current_message)
    return "\n".join([head, *entries, tail])


def fit_entries(head: str, entries: Sequence[str], tail: str, max_tokens: int) -> List[str]:
    """从最新条目向前保留，直到加入下一条会超出预算"""
    kept: List[str] = []
    for entry in reversed(entries):
        candidate = "\n".join([head, entry, *kept, tail])
        if estimate_tokens(candidate) > max_tokens:
            break
        kept.insert(0, entry)
    return kept


def truncate_context(context: str, max_tokens: int) -> str:
    """裁剪上下文以适应 token 预算

    保留对话标题之前的全部内容与当前消息段，只丢弃较早的对话行。
    找不到段落标记时退化为保留末尾 max_tokens * 4 个字符。
    """
    if estimate_tokens(context) <= max_tokens:
        return context

    lines = context.split("\n")
    current_idx = _last_index(lines, CURRENT_HEADER, len(lines))
    recent_idx = _last_index(lines, RECENT_HEADER, current_idx) if current_idx != -1 else -1

    if current_idx == -1 or recent_idx == -1:
        # TODO: 按字符截断可能切断句子，需要确认是否应改为按行截断
        return context[-max_tokens * 4:]

    # 当前消息标题前的空行属于当前消息段
    tail_start = current_idx
    if tail_start - 1 > recent_idx and lines[tail_start - 1] == "":
        tail_start -= 1

    head = "\n".join(lines[:recent_idx + 1])
    tail = "\n".join(lines[tail_start:])
    kept = fit_entries(head, lines[recent_idx + 1:tail_start], tail, max_tokens)
    return "\n".join([head, *kept, tail])


def _last_index(lines: Sequence[str], prefix: str, stop: int) -> int:
    for i in range(stop - 1, -1, -1):
        if lines[i].startswith(prefix):
            return i
    return -1
