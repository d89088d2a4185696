"""摘要 / 对话提示词配置。

每种语言对应一个封闭的 PromptConfig（字段固定且必填），调用方只能对
已知字段做部分覆盖，覆盖值按字段合并到内置默认值之上。
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from summarizer_core.domain.exceptions import ValidationError


@dataclass(frozen=True)
class PromptConfig:
    """单个语言的提示词与生成参数。user_prompt 中的 {text} 会被替换为正文。"""

    system_prompt: str
    user_prompt: str
    temperature: float
    max_tokens: int


DEFAULT_PROMPTS: Dict[str, PromptConfig] = {
    "chinese": PromptConfig(
        system_prompt="你是一个有用的助手，专门总结网页内容。请提供简洁、结构清晰的摘要，突出主要观点和关键信息。",
        user_prompt="请为以下网页内容提供一个简洁、结构清晰的中文摘要，突出主要观点和关键信息：\n\n{text}",
        temperature=0.5,
        max_tokens=1000,
    ),
    "english": PromptConfig(
        system_prompt=(
            "You are a helpful assistant that summarizes web page content. Provide a concise, "
            "well-structured summary highlighting the main points and key information."
        ),
        user_prompt=(
            "Please provide a concise, well-structured summary of this webpage content, "
            "highlighting the main points and key information:\n\n{text}"
        ),
        temperature=0.5,
        max_tokens=1000,
    ),
}

_FIELD_NAMES = {f.name for f in fields(PromptConfig)}


def resolve_prompt_config(
    language: str,
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> PromptConfig:
    """返回 language 对应的 PromptConfig，并合并 overrides[language] 中的字段。"""

    base = DEFAULT_PROMPTS.get(language)
    if base is None:
        raise ValidationError(code="UNSUPPORTED_LANGUAGE", message=f"Unsupported language: {language!r}")
    patch = dict((overrides or {}).get(language) or {})
    if not patch:
        return base

    unknown = set(patch) - _FIELD_NAMES
    if unknown:
        raise ValidationError(
            code="INVALID_PROMPT_CONFIG",
            message=f"Unknown prompt fields for {language}: {sorted(unknown)}",
        )
    try:
        if "temperature" in patch:
            patch["temperature"] = float(patch["temperature"])
        if "max_tokens" in patch:
            patch["max_tokens"] = int(patch["max_tokens"])
    except (TypeError, ValueError) as e:
        raise ValidationError(code="INVALID_PROMPT_CONFIG", message=str(e))
    if patch.get("max_tokens", base.max_tokens) < 1:
        raise ValidationError(code="INVALID_PROMPT_CONFIG", message="max_tokens must be >= 1")
    return replace(base, **patch)


def render_user_prompt(config: PromptConfig, text: str) -> str:
    return config.user_prompt.replace("{text}", text)


def summary_preamble(language: str, summary: str) -> str:
    """分块路径中注入到下一个分块前的滚动摘要。"""

    if language == "chinese":
        return f"之前的对话摘要：{summary}\n\n请基于这个摘要和当前对话继续回答。"
    return (
        f"Previous conversation summary: {summary}\n\n"
        "Please continue the conversation based on this summary and the current dialogue."
    )
