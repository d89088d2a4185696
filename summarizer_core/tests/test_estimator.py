from summarizer_core.context.estimator import estimate_messages_tokens, estimate_tokens
from summarizer_core.domain.models import ChatMessage


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("a") == 1
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("x" * 400) == 100


def test_estimate_messages_sums_before_rounding():
    messages = [ChatMessage(role="user", content="abc"), ChatMessage(role="assistant", content="de")]
    # 3 + 2 = 5 字符 -> 2，而不是 1 + 1
    assert estimate_messages_tokens(messages) == 2
    assert estimate_messages_tokens([]) == 0
