from typing import List, Sequence

from summarizer_core.domain.exceptions import BusinessError, ValidationError
from summarizer_core.domain.models import ChatMessage, CompletionOptions
from summarizer_core.infrastructure.logging.logger import logger
from summarizer_core.providers.base import CompletionClient


class FallbackChain:
    """按顺序尝试多个 CompletionClient，第一个成功的结果即返回。

    全部失败时抛出最后一个客户端的异常。
    """

    def __init__(self, clients: Sequence[CompletionClient]):
        if not clients:
            raise ValidationError(code="NO_CLIENTS", message="FallbackChain needs at least one client")
        self._clients = list(clients)
        self.name = "+".join(c.name for c in self._clients)

    @property
    def clients(self) -> List[CompletionClient]:
        return list(self._clients)

    async def complete(self, messages: List[ChatMessage], options: CompletionOptions) -> str:
        *fallible, last = self._clients
        for client in fallible:
            try:
                return await client.complete(messages, options)
            except BusinessError as e:
                logger.warning(
                    "Completion client failed, trying next",
                    extra={"extra": {"client": client.name, "code": e.code, "error": e.message}},
                )
        # 最后一个客户端的异常原样向上传播
        return await last.complete(messages, options)
