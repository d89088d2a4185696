"""Model Backend 抽象接口。

上层（RequestResolver / LargeContextProcessor）不直接依赖具体厂商 SDK，而是依赖此协议：

- 每种调用方式实现一个 CompletionClient（结构化 SDK 客户端、原始 HTTP 客户端）。
- 负责：把消息列表转成具体 API 请求，返回回答文本；
  失败时只抛 domain.exceptions 中的 Backend*Error。

这样结构化客户端和原始客户端可以在同一契约下互换，并由 FallbackChain 依次尝试。
"""

from typing import List, Protocol

from summarizer_core.domain.models import ChatMessage, CompletionOptions


EMPTY_RESPONSE = "No response generated"


class CompletionClient(Protocol):
    """补全客户端协议。

    实现者需要提供：
    - name: 客户端名称，用于日志。
    - complete(messages, options): 执行一次非流式补全，返回回答文本。
    """

    name: str

    async def complete(self, messages: List[ChatMessage], options: CompletionOptions) -> str:
        ...
