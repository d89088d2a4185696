"""请求解析：把一个摘要 / 对话任务变成最终的 LLMResponse。

- 摘要：resource_id 存在且未要求 force_fresh 时先查缓存；未命中则调用 Backend，
  成功后写回缓存。
- 对话：session_key 存在时先整体替换会话上下文，再交给 LargeContextProcessor
  （直接裁剪或分块 + 滚动摘要）。对话结果不写缓存。

Backend 异常原样向上传播，由 RequestRegistry 转为 error 状态。
"""

from __future__ import annotations

from typing import Callable, List, Optional

from summarizer_core.cache.content_cache import ContentCache
from summarizer_core.config.settings import Settings, settings as default_settings
from summarizer_core.context.large_context import LargeContextProcessor
from summarizer_core.domain.conversation import ConversationContextStore
from summarizer_core.domain.exceptions import ValidationError
from summarizer_core.domain.models import (
    BackendParams,
    ChatMessage,
    ChatRequest,
    CompletionOptions,
    LLMResponse,
    SummarizeRequest,
)
from summarizer_core.infrastructure.logging.logger import logger
from summarizer_core.prompts import PromptConfig, render_user_prompt, resolve_prompt_config
from summarizer_core.providers import create_backend, default_backend_params
from summarizer_core.providers.base import CompletionClient


BackendFactory = Callable[[BackendParams], CompletionClient]


class RequestResolver:
    def __init__(
        self,
        cache: ContentCache,
        contexts: ConversationContextStore,
        backend_factory: BackendFactory = create_backend,
        cfg: Optional[Settings] = None,
    ):
        self._cache = cache
        self._contexts = contexts
        self._backend_factory = backend_factory
        self._settings = cfg or default_settings

    async def resolve_summary(self, req: SummarizeRequest) -> LLMResponse:
        if not req.text or not req.text.strip():
            raise ValidationError(code="EMPTY_TEXT", message="No text to summarize")

        if req.resource_id and not req.force_fresh:
            entry = await self._cache.lookup(req.resource_id, req.language)
            if entry is not None:
                return LLMResponse(payload=entry.payload, from_cache=True, cached_at=entry.created_at, model=entry.model)
        elif req.force_fresh:
            logger.info("Skipping cache check due to force_fresh", extra={"extra": {"resource": req.resource_id}})

        params = self._backend_params(req.backend)
        prompt = self._prompt_config(req.language, req.custom_prompts)
        backend = self._backend_factory(params)
        payload = await self._summarize_text(backend, prompt, req.text, params.model)

        if req.resource_id and payload:
            await self._cache.set(req.resource_id, req.language, payload, params.model or params.provider)
        return LLMResponse(payload=payload, model=params.model)

    async def resolve_chat(self, req: ChatRequest) -> LLMResponse:
        if req.session_key:
            self._contexts.put(req.session_key, req.messages)

        params = self._backend_params(req.backend)
        prompt = self._prompt_config(req.language, req.custom_prompts)
        backend = self._backend_factory(params)
        options = CompletionOptions(max_tokens=prompt.max_tokens, temperature=prompt.temperature, model=params.model)

        async def complete(messages: List[ChatMessage]) -> str:
            return await backend.complete(messages, options)

        async def summarize(text: str) -> str:
            return await self._summarize_text(backend, prompt, text, params.model)

        processor = LargeContextProcessor(
            complete,
            summarize,
            max_tokens=self._settings.chat_context_tokens or prompt.max_tokens,
            language=req.language,
            token_threshold=self._settings.large_context_token_threshold,
            chunk_max_chars=self._settings.chunk_max_chars,
        )
        logger.info(
            "Chat request",
            extra={"extra": {"provider": params.provider, "messages": len(req.messages), "session": req.session_key}},
        )
        payload = await processor.process(req.messages)
        return LLMResponse(payload=payload, model=params.model)

    async def _summarize_text(
        self,
        backend: CompletionClient,
        prompt: PromptConfig,
        text: str,
        model: Optional[str],
    ) -> str:
        messages = [
            ChatMessage(role="system", content=prompt.system_prompt),
            ChatMessage(role="user", content=render_user_prompt(prompt, text)),
        ]
        options = CompletionOptions(max_tokens=prompt.max_tokens, temperature=prompt.temperature, model=model)
        return await backend.complete(messages, options)

    def _backend_params(self, params: Optional[BackendParams]) -> BackendParams:
        return params or default_backend_params(cfg=self._settings)

    def _prompt_config(self, language: str, overrides) -> PromptConfig:
        merged = {**self._settings.custom_prompts}
        for lang, patch in (overrides or {}).items():
            merged[lang] = {**merged.get(lang, {}), **patch}
        return resolve_prompt_config(language, merged)
