"""请求编排：请求跟踪与解析路径。"""

from .registry import RequestRegistry
from .resolver import RequestResolver

__all__ = ["RequestRegistry", "RequestResolver"]
