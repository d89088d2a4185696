import pytest

from summarizer_core.domain.exceptions import ValidationError
from summarizer_core.prompts import DEFAULT_PROMPTS, render_user_prompt, resolve_prompt_config, summary_preamble


def test_defaults_per_language():
    zh = resolve_prompt_config("chinese")
    en = resolve_prompt_config("english")
    assert zh is DEFAULT_PROMPTS["chinese"]
    assert en.temperature == 0.5
    assert en.max_tokens == 1000
    assert "{text}" in en.user_prompt


def test_partial_override_merges_fields():
    cfg = resolve_prompt_config("english", {"english": {"temperature": "0.2", "max_tokens": 300}})
    assert cfg.temperature == 0.2
    assert cfg.max_tokens == 300
    assert cfg.system_prompt == DEFAULT_PROMPTS["english"].system_prompt
    # 其他语言的覆盖不影响当前语言
    assert resolve_prompt_config("chinese", {"english": {"max_tokens": 1}}).max_tokens == 1000


def test_invalid_overrides_rejected():
    with pytest.raises(ValidationError) as exc:
        resolve_prompt_config("french")
    assert exc.value.code == "UNSUPPORTED_LANGUAGE"

    with pytest.raises(ValidationError) as exc:
        resolve_prompt_config("english", {"english": {"top_p": 0.9}})
    assert exc.value.code == "INVALID_PROMPT_CONFIG"

    with pytest.raises(ValidationError):
        resolve_prompt_config("english", {"english": {"max_tokens": 0}})


def test_render_and_preamble():
    cfg = resolve_prompt_config("english")
    assert render_user_prompt(cfg, "BODY").endswith("\n\nBODY")
    assert summary_preamble("chinese", "S").startswith("之前的对话摘要：S")
    assert summary_preamble("english", "S").startswith("Previous conversation summary: S")
