"""Summarizer Core 顶层包。

该包提供网页摘要 / 对话请求的编排核心，
包括配置加载、领域模型、内容缓存、异步请求跟踪、
大上下文分块处理以及 Provider 兜底调用等能力。
"""

from summarizer_core.api.service import SummarizerService, create_service, get_default_service

__all__ = ["SummarizerService", "create_service", "get_default_service"]
