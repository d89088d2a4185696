from summarizer_core.domain.models import ChatMessage
from summarizer_core.infrastructure.storage.context_store import InMemoryConversationContextStore


def test_put_replaces_and_get_returns_copy():
    store = InMemoryConversationContextStore()
    assert store.get("tab-1") is None

    history = [ChatMessage(role="user", content="hi")]
    store.put("tab-1", history)
    history.append(ChatMessage(role="assistant", content="mutated"))
    assert len(store.get("tab-1").messages) == 1

    store.put("tab-1", [ChatMessage(role="user", content="a"), ChatMessage(role="assistant", content="b")])
    ctx = store.get("tab-1")
    assert [m.content for m in ctx.messages] == ["a", "b"]
    ctx.messages.clear()
    assert len(store.get("tab-1").messages) == 2


def test_clear_and_clear_all():
    store = InMemoryConversationContextStore()
    store.put("a", [ChatMessage(role="user", content="1")])
    store.put("b", [ChatMessage(role="user", content="2")])
    store.clear("a")
    store.clear("missing")
    assert store.get("a") is None
    assert len(store) == 1
    store.clear_all()
    assert len(store) == 0
