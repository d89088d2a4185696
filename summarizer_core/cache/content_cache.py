"""按资源（页面 URL）+ 语言缓存模型结果。

整个缓存表作为一条记录保存在 KeyValueStore 的 CACHE_STORAGE_KEY 下：

    {"<resource_id>|<language>": {"resourceId", "language", "payload", "model", "createdAt"}}

- 过期：读到超过 expiry_days 的条目时删除并返回 miss，没有后台扫描。
- 淘汰：写入后条目数超过 max_entries 时，按 createdAt 从旧到新删除多余条目；
  读取不会刷新时间。
- 并发：所有读-改-写序列（set / remove / clear）在同一把 asyncio.Lock 内执行，
  挂起期间其他任务不能基于旧的缓存表覆盖写入。
- 缓存是尽力而为的：存储层异常（CacheError）在这里被吞掉，读降级为 miss，写直接放弃。
"""

import asyncio
import json
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from summarizer_core.config.settings import settings
from summarizer_core.domain.exceptions import CacheError
from summarizer_core.domain.models import CacheConfig, CacheEntry, cache_key, now_ms
from summarizer_core.infrastructure.logging.logger import logger
from summarizer_core.infrastructure.storage.kv_store import KeyValueStore


CACHE_STORAGE_KEY = "summary_cache"
CACHE_SETTINGS_KEY = "cache_settings"

# 设置页保存的记录使用 camelCase 字段名
_RECORD_FIELDS = {"maxEntries": "max_entries", "expiryDays": "expiry_days"}


def default_cache_config() -> CacheConfig:
    return CacheConfig(max_entries=settings.cache_max_entries, expiry_days=settings.cache_expiry_days)


async def load_cache_config(store: KeyValueStore, defaults: Optional[CacheConfig] = None) -> CacheConfig:
    """读取持久化的缓存设置，缺失或非法时回退到 defaults。"""

    base = defaults or default_cache_config()
    try:
        record = await store.get(CACHE_SETTINGS_KEY)
    except CacheError as e:
        logger.warning("Failed to read cache settings", extra={"extra": {"error": e.message}})
        return base
    if not isinstance(record, dict):
        return base
    data = base.model_dump()
    for name, value in record.items():
        data[_RECORD_FIELDS.get(name, name)] = value
    try:
        return CacheConfig(**data)
    except (PydanticValidationError, TypeError) as e:
        logger.warning("Invalid cache settings record, using defaults", extra={"extra": {"error": str(e)}})
        return base


class ContentCache:
    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], int] = now_ms,
        defaults: Optional[CacheConfig] = None,
    ):
        self._store = store
        self._defaults = defaults
        # config 为空时每次操作都从 store 的设置记录加载，保证设置页修改即时生效
        self._config = config
        self._clock = clock
        self._lock = asyncio.Lock()

    async def config(self) -> CacheConfig:
        if self._config is not None:
            return self._config
        return await load_cache_config(self._store, self._defaults)

    async def lookup(self, resource_id: str, language: str) -> Optional[CacheEntry]:
        """返回未过期的缓存条目；过期条目会被顺便删除。"""

        key = cache_key(resource_id, language)
        try:
            cache = await self._load()
            raw = cache.get(key)
            if raw is None:
                logger.info("Cache miss", extra={"extra": {"key": key}})
                return None
            entry = CacheEntry.from_record(raw)
            if entry.resource_id != resource_id or entry.language != language:
                return None
            cfg = await self.config()
            if self._clock() - entry.created_at > cfg.expiry_ms:
                logger.info("Cache entry expired", extra={"extra": {"key": key}})
                await self._drop_stale(key, entry.created_at)
                return None
            logger.info("Cache hit", extra={"extra": {"key": key, "model": entry.model}})
            return entry
        except CacheError as e:
            logger.error("Error reading from cache", extra={"extra": {"key": key, "error": e.message}})
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Corrupted cache entry", extra={"extra": {"key": key, "error": str(e)}})
            return None

    async def get(self, resource_id: str, language: str) -> Optional[str]:
        entry = await self.lookup(resource_id, language)
        return entry.payload if entry else None

    async def has(self, resource_id: str, language: str) -> bool:
        return await self.lookup(resource_id, language) is not None

    async def set(self, resource_id: str, language: str, payload: str, model: str) -> None:
        key = cache_key(resource_id, language)
        try:
            cfg = await self.config()
            async with self._lock:
                await self._write_entry(key, resource_id, language, payload, model, cfg)
        except CacheError as e:
            logger.error("Error writing to cache", extra={"extra": {"key": key, "error": e.message}})

    async def _write_entry(
        self, key: str, resource_id: str, language: str, payload: str, model: str, cfg: CacheConfig
    ) -> None:
        cache = await self._load()
        entry = CacheEntry(
            resource_id=resource_id,
            language=language,
            payload=payload,
            model=model,
            created_at=self._clock(),
        )
        cache[key] = entry.to_record()

        if len(cache) > cfg.max_entries:
            ordered = sorted(cache.items(), key=lambda kv: _created_at(kv[1]))
            evicted = [k for k, _ in ordered[: len(cache) - cfg.max_entries]]
            for k in evicted:
                del cache[k]
            logger.info("Evicted cache entries", extra={"extra": {"keys": evicted}})

        await self._store.set(CACHE_STORAGE_KEY, cache)
        logger.info("Cached response", extra={"extra": {"key": key, "length": len(payload)}})

    async def remove(self, resource_id: str, language: str) -> None:
        key = cache_key(resource_id, language)
        try:
            async with self._lock:
                cache = await self._load()
                if cache.pop(key, None) is not None:
                    await self._store.set(CACHE_STORAGE_KEY, cache)
        except CacheError as e:
            logger.error("Error removing from cache", extra={"extra": {"key": key, "error": e.message}})

    async def _drop_stale(self, key: str, created_at: int) -> None:
        async with self._lock:
            cache = await self._load()
            # 读取之后可能已被并发的 set 刷新，只删除仍是旧时间戳的条目
            if key in cache and _created_at(cache[key]) == created_at:
                del cache[key]
                await self._store.set(CACHE_STORAGE_KEY, cache)

    async def clear(self) -> None:
        try:
            async with self._lock:
                await self._store.remove(CACHE_STORAGE_KEY)
            logger.info("Cache cleared")
        except CacheError as e:
            logger.error("Error clearing cache", extra={"extra": {"error": e.message}})

    async def stats(self) -> Dict[str, Any]:
        """统计未过期条目：数量、总字节数、最早/最新时间以及逐条明细。"""

        empty: Dict[str, Any] = {"count": 0, "totalBytes": 0, "oldest": None, "newest": None, "entries": []}
        try:
            cache = await self._load()
            cfg = await self.config()
        except CacheError as e:
            logger.error("Error getting cache stats", extra={"extra": {"error": e.message}})
            return empty

        now = self._clock()
        live = []
        for raw in cache.values():
            try:
                entry = CacheEntry.from_record(raw)
            except (KeyError, TypeError, ValueError):
                continue
            if now - entry.created_at <= cfg.expiry_ms:
                live.append(entry)
        if not live:
            return empty

        live.sort(key=lambda e: e.created_at)
        breakdown = []
        for entry in live:
            size = len(json.dumps(entry.to_record(), ensure_ascii=False).encode("utf-8"))
            breakdown.append(
                {
                    "key": entry.key,
                    "resourceId": entry.resource_id,
                    "language": entry.language,
                    "model": entry.model,
                    "createdAt": entry.created_at,
                    "bytes": size,
                }
            )
        return {
            "count": len(live),
            "totalBytes": sum(item["bytes"] for item in breakdown),
            "oldest": live[0].created_at,
            "newest": live[-1].created_at,
            "entries": breakdown,
        }

    async def _load(self) -> Dict[str, Any]:
        cache = await self._store.get(CACHE_STORAGE_KEY)
        return cache if isinstance(cache, dict) else {}


def _created_at(record: Any) -> int:
    try:
        return int(record["createdAt"])
    except (KeyError, TypeError, ValueError):
        return 0
