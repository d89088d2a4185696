"""Model Backend 集成层。

该包下的模块负责：
- 定义补全客户端协议 (base)。
- 维护 Provider 配置 (registry)。
- 提供结构化 SDK 客户端 (openai_client / anthropic_client) 与原始 HTTP 客户端 (http_client / anthropic_client)。
- 按顺序兜底的 FallbackChain (fallback)。
"""

from typing import Optional

from summarizer_core.config.settings import Settings, settings
from summarizer_core.domain.exceptions import ValidationError
from summarizer_core.domain.models import BackendParams
from summarizer_core.providers.anthropic_client import AnthropicHttpClient, AnthropicSdkClient
from summarizer_core.providers.base import CompletionClient
from summarizer_core.providers.fallback import FallbackChain
from summarizer_core.providers.http_client import HttpCompletionClient
from summarizer_core.providers.openai_client import OpenAICompatibleClient
from summarizer_core.providers.registry import get_provider_config


def default_backend_params(provider: Optional[str] = None, cfg: Optional[Settings] = None) -> BackendParams:
    """根据配置构造默认 BackendParams。"""

    cfg = cfg or settings
    return BackendParams(
        provider=(provider or cfg.llm_provider).lower(),
        api_key=cfg.llm_api_key,
        api_url=cfg.llm_api_url,
        virtual_key=cfg.llm_virtual_key,
        model=cfg.llm_model,
        timeout=cfg.http_timeout,
    )


def create_backend(params: Optional[BackendParams] = None) -> CompletionClient:
    """按 Provider 协议创建 结构化客户端 -> 原始 HTTP 客户端 的兜底链。"""

    params = params or default_backend_params()
    try:
        provider = get_provider_config(params.provider)
    except KeyError as e:
        raise ValidationError(code="UNKNOWN_PROVIDER", message=str(e))
    if provider.protocol == "anthropic":
        return FallbackChain([AnthropicSdkClient(params, provider), AnthropicHttpClient(params, provider)])
    return FallbackChain([OpenAICompatibleClient(params, provider), HttpCompletionClient(params, provider)])


__all__ = [
    "AnthropicHttpClient",
    "AnthropicSdkClient",
    "CompletionClient",
    "FallbackChain",
    "HttpCompletionClient",
    "OpenAICompatibleClient",
    "create_backend",
    "default_backend_params",
]
