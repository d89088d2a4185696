"""大上下文处理。

根据整段对话的估算 token 数选择路径：

- 直接路径（<= token_threshold）：fit_to_budget 裁剪后一次调用模型。
- 分块路径（> token_threshold）：按字符数切成有序分块，逐块调用模型；
  从第二块开始，先把已处理内容压缩成滚动摘要，作为 system 消息放到当前块前面。
  只返回最后一块的回答。
"""

from typing import Awaitable, Callable, List, Sequence

from summarizer_core.context.estimator import CHARS_PER_TOKEN, estimate_messages_tokens, estimate_tokens
from summarizer_core.domain.exceptions import BusinessError, ChunkingExhaustedError
from summarizer_core.domain.models import ChatMessage
from summarizer_core.infrastructure.logging.logger import logger
from summarizer_core.prompts import summary_preamble


TRUNCATION_MARKER = "..."
DEFAULT_CHUNK_MAX_CHARS = 50_000
DEFAULT_TOKEN_THRESHOLD = 100_000

CompleteFn = Callable[[List[ChatMessage]], Awaitable[str]]
SummarizeFn = Callable[[str], Awaitable[str]]


def fit_to_budget(messages: Sequence[ChatMessage], max_tokens: int) -> List[ChatMessage]:
    """把对话裁剪到 max_tokens 预算内。

    1. 首条 system 消息始终保留，且最先计入预算。
    2. 预留 max_tokens // 3 给模型回答，剩余部分用于历史。
    3. 从最新到最旧依次保留能放下的消息；第一条放不下的消息截断到
       剩余字符额度（剩余 token * 4）并追加 "..."，更早的消息全部丢弃。
    4. 输出保持原始时间顺序，system 消息在最前。
    """

    system: List[ChatMessage] = []
    rest = list(messages)
    total = 0
    if rest and rest[0].role == "system":
        system = [rest.pop(0)]
        total = estimate_tokens(system[0].content)

    available = max_tokens - max_tokens // 3
    kept: List[ChatMessage] = []
    for message in reversed(rest):
        cost = estimate_tokens(message.content)
        if total + cost <= available:
            kept.append(message)
            total += cost
            continue
        allowance = max(available - total, 0) * CHARS_PER_TOKEN
        kept.append(ChatMessage(role=message.role, content=message.content[:allowance] + TRUNCATION_MARKER))
        break

    kept.reverse()
    return system + kept


def chunk_messages(
    messages: Sequence[ChatMessage],
    max_chars: int = DEFAULT_CHUNK_MAX_CHARS,
) -> List[List[ChatMessage]]:
    """按字符数把消息切成有序分块，单条消息不会被拆开（超长消息独占一块）。"""

    chunks: List[List[ChatMessage]] = []
    current: List[ChatMessage] = []
    size = 0
    for message in messages:
        length = len(message.content)
        if current and size + length > max_chars:
            chunks.append(current)
            current = []
            size = 0
        current.append(message)
        size += length
    if current:
        chunks.append(current)
    return chunks


def integrate_summary(chunk: Sequence[ChatMessage], summary: str, language: str) -> List[ChatMessage]:
    if not summary:
        return list(chunk)
    return [ChatMessage(role="system", content=summary_preamble(language, summary)), *chunk]


def render_transcript(messages: Sequence[ChatMessage]) -> str:
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


class LargeContextProcessor:
    """对话补全的上下文管理器。

    complete: 发送消息列表并返回模型回答。
    summarize: 对一段纯文本做摘要（滚动摘要使用），失败时仅记录日志。
    """

    def __init__(
        self,
        complete: CompleteFn,
        summarize: SummarizeFn,
        *,
        max_tokens: int,
        language: str = "chinese",
        token_threshold: int = DEFAULT_TOKEN_THRESHOLD,
        chunk_max_chars: int = DEFAULT_CHUNK_MAX_CHARS,
    ):
        self._complete = complete
        self._summarize = summarize
        self._max_tokens = max_tokens
        self._language = language
        self._token_threshold = token_threshold
        self._chunk_max_chars = chunk_max_chars

    def is_extremely_large(self, messages: Sequence[ChatMessage]) -> bool:
        return estimate_messages_tokens(messages) > self._token_threshold

    async def process(self, messages: Sequence[ChatMessage]) -> str:
        if not messages:
            raise ChunkingExhaustedError(code="NO_MESSAGES", message="No messages to process")
        if self.is_extremely_large(messages):
            logger.info(
                "Processing extremely large context",
                extra={"extra": {"estimated_tokens": estimate_messages_tokens(messages)}},
            )
            return await self.process_chunked(messages)
        return await self.complete_direct(messages)

    async def complete_direct(self, messages: Sequence[ChatMessage]) -> str:
        return await self._complete(fit_to_budget(messages, self._max_tokens))

    async def process_chunked(self, messages: Sequence[ChatMessage]) -> str:
        chunks = chunk_messages(messages, self._chunk_max_chars)
        if not chunks:
            raise ChunkingExhaustedError(code="CHUNKING_EXHAUSTED", message="Failed to process large context")

        processed = ""
        summary = ""
        response = ""
        for index, chunk in enumerate(chunks):
            if index > 0 and processed:
                try:
                    summary = await self._summarize(processed)
                except BusinessError as e:
                    # 摘要失败不致命：沿用上一轮摘要继续处理当前块
                    logger.warning(
                        "Failed to create conversation summary",
                        extra={"extra": {"chunk": index, "error": e.message}},
                    )

            logger.info(
                "Processing context chunk",
                extra={"extra": {"chunk": index, "total": len(chunks), "messages": len(chunk)}},
            )
            response = await self.complete_direct(integrate_summary(chunk, summary, self._language))
            processed += "\n\n" + render_transcript(chunk)
        return response
