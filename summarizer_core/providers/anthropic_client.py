"""Claude（Anthropic messages 协议）客户端。

与 OpenAI 兼容协议的差异：
- system 消息不放在 messages 里，而是合并成顶层的 system 字段；
- 鉴权使用 x-api-key 请求头，并必须携带 anthropic-version；
- 回答文本位于 content[0].text。

AnthropicSdkClient 基于 anthropic SDK，AnthropicHttpClient 直接 POST /v1/messages 作为兜底。
"""

from typing import Any, Dict, List, Optional, Tuple, cast

import anthropic
import httpx

from summarizer_core.domain.exceptions import BackendApiError, ValidationError, error_for_status, network_error
from summarizer_core.domain.models import BackendParams, ChatMessage, CompletionOptions
from summarizer_core.providers.base import EMPTY_RESPONSE
from summarizer_core.providers.registry import ProviderConfig


ANTHROPIC_VERSION = "2023-06-01"


def split_system(messages: List[ChatMessage]) -> Tuple[Optional[str], List[Dict[str, str]]]:
    """拆出 system 消息（多条按空行拼接），其余消息保持原顺序。"""

    system = [m.content for m in messages if m.role == "system"]
    rest = [m.to_payload() for m in messages if m.role != "system"]
    return ("\n\n".join(system) if system else None), rest


def _request_body(model: str, messages: List[ChatMessage], options: CompletionOptions) -> Dict[str, Any]:
    system, rest = split_system(messages)
    body: Dict[str, Any] = {
        "model": model,
        "max_tokens": options.max_tokens,
        "temperature": options.temperature,
        "messages": rest,
    }
    if system:
        body["system"] = system
    return body


def _require_key(params: BackendParams, provider: ProviderConfig) -> str:
    if not params.api_key:
        raise ValidationError(code="MISSING_API_KEY", message=f"{provider.display_name} API key not set")
    return params.api_key


class AnthropicSdkClient:
    """使用 anthropic.AsyncAnthropic 的结构化客户端。"""

    def __init__(self, params: BackendParams, provider: ProviderConfig):
        self._params = params
        self._provider = provider
        self.name = f"{provider.name}-sdk"

    async def complete(self, messages: List[ChatMessage], options: CompletionOptions) -> str:
        api_key = _require_key(self._params, self._provider)
        body = _request_body(self._provider.resolve_model(options.model or self._params.model), messages, options)
        try:
            async with anthropic.AsyncAnthropic(
                api_key=api_key,
                base_url=self._params.api_url or self._provider.base_url,
                default_headers=self._provider.headers(self._params.virtual_key),
                timeout=self._params.timeout,
                max_retries=0,
            ) as client:
                response = await client.messages.create(**cast(Any, body))
        except anthropic.APIConnectionError as e:
            raise network_error(self._provider.display_name, str(e))
        except anthropic.APIStatusError as e:
            raise error_for_status(e.status_code, self._provider.display_name, e.message)
        except anthropic.APIError as e:
            raise BackendApiError(code="API_ERROR", message=f"{self._provider.display_name} API error: {e.message}")

        if not response.content:
            return EMPTY_RESPONSE
        text = getattr(response.content[0], "text", None) or ""
        return text.strip() or EMPTY_RESPONSE


class AnthropicHttpClient:
    """基于 httpx.AsyncClient 的原始 messages 协议客户端。"""

    def __init__(self, params: BackendParams, provider: ProviderConfig):
        self._params = params
        self._provider = provider
        self.name = f"{provider.name}-http"

    async def complete(self, messages: List[ChatMessage], options: CompletionOptions) -> str:
        api_key = _require_key(self._params, self._provider)
        base = (self._params.api_url or self._provider.base_url).rstrip("/")
        body = _request_body(self._provider.resolve_model(options.model or self._params.model), messages, options)
        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
            **self._provider.headers(self._params.virtual_key),
        }
        try:
            async with httpx.AsyncClient(timeout=self._params.timeout, trust_env=False) as client:
                resp = await client.post(f"{base}/v1/messages", json=body, headers=headers)
        except httpx.RequestError as e:
            raise network_error(self._provider.display_name, str(e))
        if resp.status_code >= 400:
            raise error_for_status(resp.status_code, self._provider.display_name, _error_detail(resp))
        try:
            data = resp.json()
        except ValueError as e:
            raise BackendApiError(code="INVALID_RESPONSE", message=f"{self._provider.display_name} returned invalid JSON: {e}")
        blocks = data.get("content") or []
        if not blocks:
            return EMPTY_RESPONSE
        return (blocks[0].get("text") or "").strip() or EMPTY_RESPONSE


def _error_detail(resp: httpx.Response) -> str:
    # 错误体形如 {"type": "error", "error": {"type": ..., "message": ...}}
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return resp.text
