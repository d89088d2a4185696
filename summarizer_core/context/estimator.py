"""粗略的 token 估算：约 4 个字符折算 1 个 token，不是真实分词器。"""

import math
from typing import Iterable

from summarizer_core.domain.models import ChatMessage


CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_messages_tokens(messages: Iterable[ChatMessage]) -> int:
    """按全部消息内容的总字符数估算（先求和再取整）。"""

    return math.ceil(sum(len(m.content) for m in messages) / CHARS_PER_TOKEN)
