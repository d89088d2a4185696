"""原始 HTTP 客户端：直接 POST {base_url}/chat/completions。

作为结构化 SDK 客户端失败后的兜底，请求体只使用公共字段：
model/messages/max_tokens/temperature。
"""

from typing import List

import httpx

from summarizer_core.domain.exceptions import BackendApiError, ValidationError, error_for_status, network_error
from summarizer_core.domain.models import BackendParams, ChatMessage, CompletionOptions
from summarizer_core.providers.base import EMPTY_RESPONSE
from summarizer_core.providers.registry import ProviderConfig


class HttpCompletionClient:
    """基于 httpx.AsyncClient 的原始协议客户端。"""

    def __init__(self, params: BackendParams, provider: ProviderConfig):
        self._params = params
        self._provider = provider
        self.name = f"{provider.name}-http"

    async def complete(self, messages: List[ChatMessage], options: CompletionOptions) -> str:
        if not self._params.api_key:
            raise ValidationError(code="MISSING_API_KEY", message=f"{self._provider.display_name} API key not set")
        base = (self._params.api_url or self._provider.base_url).rstrip("/")
        payload = {
            "model": self._provider.resolve_model(options.model or self._params.model),
            "messages": [m.to_payload() for m in messages],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._params.api_key}",
            "Content-Type": "application/json",
            **self._provider.headers(self._params.virtual_key),
        }
        try:
            async with httpx.AsyncClient(timeout=self._params.timeout, trust_env=False) as client:
                resp = await client.post(f"{base}/chat/completions", json=payload, headers=headers)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise network_error(self._provider.display_name, str(e))
        if resp.status_code >= 400:
            raise error_for_status(resp.status_code, self._provider.display_name, resp.text)
        try:
            data = resp.json()
        except ValueError as e:
            raise BackendApiError(code="INVALID_RESPONSE", message=f"{self._provider.display_name} returned invalid JSON: {e}")
        return _extract_content(data)


def _extract_content(data: dict) -> str:
    choices = data.get("choices") or []
    if not choices:
        return EMPTY_RESPONSE
    message = choices[0].get("message") or {}
    return (message.get("content") or "").strip() or EMPTY_RESPONSE
