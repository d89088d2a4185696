"""对外 API 服务模块。

提供提交 / 轮询 / 缓存管理 / 会话管理的简化接口。
提交接口不会同步抛出任何异常：所有失败都只能通过 poll() 看到 error 状态。
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from summarizer_core.cache.content_cache import ContentCache
from summarizer_core.config.settings import Settings, settings
from summarizer_core.domain.conversation import ConversationContextStore
from summarizer_core.domain.exceptions import JobNotFound
from summarizer_core.domain.models import BackendParams, CacheConfig, ChatMessage, ChatRequest, SummarizeRequest
from summarizer_core.infrastructure.logging.logger import logger
from summarizer_core.infrastructure.storage.context_store import InMemoryConversationContextStore
from summarizer_core.infrastructure.storage.kv_store import JsonKeyValueStore
from summarizer_core.tasks.registry import RequestRegistry
from summarizer_core.tasks.resolver import RequestResolver


MessageLike = Union[ChatMessage, Mapping[str, Any]]


class SummarizerService:
    def __init__(
        self,
        registry: RequestRegistry,
        resolver: RequestResolver,
        cache: ContentCache,
        contexts: ConversationContextStore,
        cfg: Optional[Settings] = None,
    ):
        self.registry = registry
        self.resolver = resolver
        self.cache = cache
        self.contexts = contexts
        self._settings = cfg or settings

    # ---- 生命周期 ----

    def start(self) -> None:
        """启动请求清理任务（需在事件循环内调用）。"""
        self.registry.start_sweeper()

    async def aclose(self) -> None:
        await self.registry.stop()

    # ---- 提交 / 轮询 ----

    def submit_summary(
        self,
        text: str,
        *,
        resource_id: Optional[str] = None,
        language: Optional[str] = None,
        force_fresh: bool = False,
        backend: Optional[BackendParams] = None,
        custom_prompts: Optional[Dict[str, Dict[str, Any]]] = None,
        request_id: Optional[str] = None,
    ) -> str:
        """提交摘要任务，立即返回请求 ID。

        Args:
            text: 待总结的正文
            resource_id: 资源标识（如页面 URL），提供时参与缓存
            language: chinese / english，默认取配置
            force_fresh: 为 True 时跳过缓存读取（结果仍会写回缓存）
            backend: Backend 连接参数，默认取配置
            custom_prompts: 按语言覆盖提示词字段
            request_id: 可选的外部请求 ID；该 ID 仍在跟踪中时改用新生成的 ID
        """
        req = SummarizeRequest(
            text=text,
            resource_id=resource_id,
            language=language or self._settings.summary_language,
            force_fresh=force_fresh,
            backend=backend,
            custom_prompts=dict(custom_prompts or {}),
        )
        return self.registry.submit(
            lambda: self.resolver.resolve_summary(req),
            origin_key=resource_id or "",
            request_id=request_id,
        )

    def submit_chat(
        self,
        messages: Sequence[MessageLike],
        *,
        session_key: Optional[str] = None,
        language: Optional[str] = None,
        backend: Optional[BackendParams] = None,
        custom_prompts: Optional[Dict[str, Dict[str, Any]]] = None,
        request_id: Optional[str] = None,
    ) -> str:
        """提交对话任务，立即返回请求 ID。messages 可以是 ChatMessage 或 {role, content} 字典。"""

        async def work():
            req = ChatRequest(
                messages=[_as_message(m) for m in messages],
                session_key=session_key,
                language=language or self._settings.summary_language,
                backend=backend,
                custom_prompts=dict(custom_prompts or {}),
            )
            return await self.resolver.resolve_chat(req)

        return self.registry.submit(work, origin_key=session_key or "", request_id=request_id)

    def poll(self, job_id: str) -> Dict[str, Any]:
        """返回 {id, status, result?, error?}；未知 ID 返回 status="not_found"。"""
        try:
            return self.registry.get_status(job_id).to_dict()
        except JobNotFound as e:
            logger.info("Polled unknown request", extra={"extra": {"job_id": job_id}})
            return {"id": job_id, "status": "not_found", "error": e.message}

    async def wait(self, job_id: str) -> Dict[str, Any]:
        try:
            return (await self.registry.wait(job_id)).to_dict()
        except JobNotFound as e:
            return {"id": job_id, "status": "not_found", "error": e.message}

    # ---- 缓存管理 ----

    async def get_cache_stats(self) -> Dict[str, Any]:
        return await self.cache.stats()

    async def clear_cache(self) -> None:
        await self.cache.clear()

    async def remove_cached(self, resource_id: str, language: Optional[str] = None) -> None:
        await self.cache.remove(resource_id, language or self._settings.summary_language)

    # ---- 会话管理 ----

    def get_context(self, session_key: str) -> Optional[List[Dict[str, str]]]:
        ctx = self.contexts.get(session_key)
        if ctx is None:
            return None
        return [m.to_payload() for m in ctx.messages]

    def clear_context(self, session_key: str) -> None:
        self.contexts.clear(session_key)

    def clear_all_contexts(self) -> None:
        self.contexts.clear_all()


def _as_message(item: MessageLike) -> ChatMessage:
    if isinstance(item, ChatMessage):
        return item
    return ChatMessage.from_payload(dict(item))


def create_service(cfg: Optional[Settings] = None, **overrides: Any) -> SummarizerService:
    """按配置组装服务；overrides 可替换 store / cache / contexts / registry / backend_factory。"""

    cfg = cfg or settings
    # 注意：空的 registry / contexts 定义了 __len__，不能用 `or` 判断是否传入
    cache = overrides.get("cache")
    if cache is None:
        store = overrides.get("store")
        cache = ContentCache(
            store if store is not None else JsonKeyValueStore(root=cfg.storage_root),
            defaults=CacheConfig(max_entries=cfg.cache_max_entries, expiry_days=cfg.cache_expiry_days),
        )
    contexts = overrides.get("contexts")
    if contexts is None:
        contexts = InMemoryConversationContextStore()
    registry = overrides.get("registry")
    if registry is None:
        registry = RequestRegistry(
            max_age_seconds=cfg.job_max_age_seconds,
            sweep_interval_seconds=cfg.job_sweep_interval_seconds,
        )
    resolver_kwargs: Dict[str, Any] = {"cfg": cfg}
    if overrides.get("backend_factory") is not None:
        resolver_kwargs["backend_factory"] = overrides["backend_factory"]
    resolver = RequestResolver(cache, contexts, **resolver_kwargs)
    return SummarizerService(registry, resolver, cache, contexts, cfg=cfg)


_service: Optional[SummarizerService] = None


def get_default_service() -> SummarizerService:
    """获取默认的服务实例（单例）。"""
    global _service
    if _service is None:
        _service = create_service()
    return _service
