from typing import Dict, List, Optional

from summarizer_core.domain.conversation import ConversationContext, ConversationContextStore
from summarizer_core.domain.models import ChatMessage
from summarizer_core.infrastructure.logging.logger import logger


class InMemoryConversationContextStore(ConversationContextStore):
    """按会话 key 保存最近一次对话历史，每次 put 整体替换。

    没有自动过期，只能通过 clear / clear_all 删除。
    """

    def __init__(self) -> None:
        self._contexts: Dict[str, ConversationContext] = {}

    def put(self, session_key: str, messages: List[ChatMessage]) -> None:
        self._contexts[session_key] = ConversationContext(session_key=session_key, messages=list(messages))
        logger.info(
            "Stored conversation context",
            extra={"extra": {"session_key": session_key, "message_count": len(messages)}},
        )

    def get(self, session_key: str) -> Optional[ConversationContext]:
        ctx = self._contexts.get(session_key)
        if ctx is None:
            return None
        return ConversationContext(session_key=ctx.session_key, messages=list(ctx.messages))

    def clear(self, session_key: str) -> None:
        self._contexts.pop(session_key, None)
        logger.info("Cleared conversation context", extra={"extra": {"session_key": session_key}})

    def clear_all(self) -> None:
        self._contexts.clear()
        logger.info("Cleared all conversation contexts")

    def __len__(self) -> int:
        return len(self._contexts)
