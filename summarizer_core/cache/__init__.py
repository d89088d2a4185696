"""内容缓存：按 (resource_id, language) 保存模型结果。"""

from summarizer_core.cache.content_cache import ContentCache, load_cache_config

__all__ = ["ContentCache", "load_cache_config"]
