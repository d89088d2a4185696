"""结构化客户端：基于 openai SDK 调用 OpenAI 兼容的网关（Portkey、OpenRouter）。

SDK 的异常在这里统一转换为 domain.exceptions 中的 Backend*Error，
上层不需要感知 openai 的异常类型。
"""

from typing import Any, List, cast

import openai

from summarizer_core.domain.exceptions import BackendApiError, ValidationError, error_for_status, network_error
from summarizer_core.domain.models import BackendParams, ChatMessage, CompletionOptions
from summarizer_core.providers.base import EMPTY_RESPONSE
from summarizer_core.providers.registry import ProviderConfig


class OpenAICompatibleClient:
    """使用 openai.AsyncOpenAI 的结构化客户端。"""

    def __init__(self, params: BackendParams, provider: ProviderConfig):
        self._params = params
        self._provider = provider
        self.name = f"{provider.name}-sdk"

    async def complete(self, messages: List[ChatMessage], options: CompletionOptions) -> str:
        if not self._params.api_key:
            raise ValidationError(code="MISSING_API_KEY", message=f"{self._provider.display_name} API key not set")
        model = self._provider.resolve_model(options.model or self._params.model)
        try:
            async with openai.AsyncOpenAI(
                api_key=self._params.api_key,
                base_url=self._params.api_url or self._provider.base_url,
                default_headers=self._provider.headers(self._params.virtual_key),
                timeout=self._params.timeout,
                max_retries=0,
            ) as client:
                response = await client.chat.completions.create(
                    model=model,
                    messages=cast(Any, [m.to_payload() for m in messages]),
                    max_tokens=options.max_tokens,
                    temperature=options.temperature,
                )
        except openai.APIConnectionError as e:
            # 包含 APITimeoutError
            raise network_error(self._provider.display_name, str(e))
        except openai.APIStatusError as e:
            raise error_for_status(e.status_code, self._provider.display_name, e.message)
        except openai.APIError as e:
            raise BackendApiError(code="API_ERROR", message=f"{self._provider.display_name} API error: {e.message}")

        if not response.choices:
            return EMPTY_RESPONSE
        return (response.choices[0].message.content or "").strip() or EMPTY_RESPONSE
