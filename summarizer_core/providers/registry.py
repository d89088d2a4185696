"""Provider 配置。

Provider 分两种协议：OpenAI 兼容的 chat/completions（Portkey、OpenRouter）
与 Anthropic 的 messages（Claude）。同一协议内的差异只在：
- base_url：API 基础地址；
- default_model：请求未指定模型时使用的模型标识；
- model_prefix：部分网关要求 "<vendor>/<model>" 形式的模型名；
- virtual_key_header：Portkey 通过该请求头路由到具体厂商。
"""

from dataclasses import dataclass
from typing import Dict, Literal, Mapping, Optional


WireProtocol = Literal["openai", "anthropic"]


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    display_name: str
    base_url: str
    default_model: str
    model_prefix: str = ""
    virtual_key_header: Optional[str] = None
    protocol: WireProtocol = "openai"

    def resolve_model(self, model: Optional[str]) -> str:
        name = model or self.default_model
        if self.model_prefix and not name.startswith(self.model_prefix):
            return f"{self.model_prefix}{name}"
        return name

    def headers(self, virtual_key: Optional[str] = None) -> Dict[str, str]:
        headers = {"X-Title": "AI Page Summarizer"}
        if virtual_key and self.virtual_key_header:
            headers[self.virtual_key_header] = virtual_key
        return headers


PORTKEY_CONFIG = ProviderConfig(
    name="portkey",
    display_name="Portkey",
    base_url="https://api.portkey.ai/v1",
    default_model="gpt-4",
    virtual_key_header="x-portkey-virtual-key",
)

OPENROUTER_CONFIG = ProviderConfig(
    name="openrouter",
    display_name="OpenRouter",
    base_url="https://openrouter.ai/api/v1",
    default_model="gpt-4",
    model_prefix="openai/",
)

# base_url 为主机根地址，客户端自行拼接 /v1/messages
CLAUDE_CONFIG = ProviderConfig(
    name="claude",
    display_name="Claude",
    base_url="https://api.anthropic.com",
    default_model="claude-sonnet-4-20250514",
    protocol="anthropic",
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "portkey": PORTKEY_CONFIG,
    "openrouter": OPENROUTER_CONFIG,
    "claude": CLAUDE_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
