from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from .models import ChatMessage


@dataclass
class ConversationContext:
    session_key: str
    messages: List[ChatMessage] = field(default_factory=list)


class ConversationContextStore(Protocol):
    def put(self, session_key: str, messages: List[ChatMessage]) -> None:
        ...

    def get(self, session_key: str) -> Optional[ConversationContext]:
        ...

    def clear(self, session_key: str) -> None:
        ...

    def clear_all(self) -> None:
        ...
