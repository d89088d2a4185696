"""大上下文管理：token 估算、裁剪、分块与滚动摘要。"""

from summarizer_core.context.estimator import estimate_messages_tokens, estimate_tokens
from summarizer_core.context.large_context import (
    LargeContextProcessor,
    chunk_messages,
    fit_to_budget,
    integrate_summary,
)

__all__ = [
    "LargeContextProcessor",
    "chunk_messages",
    "estimate_messages_tokens",
    "estimate_tokens",
    "fit_to_budget",
    "integrate_summary",
]
