"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 Registry / API 层做统一捕获与用户提示。

错误分类：
- CacheError: 存储层不可用，只在缓存边界内部消化（降级为 miss / no-op）。
- Backend*Error: 上游模型服务错误，附带给用户的提示文本后继续向上传播。
- ChunkingExhaustedError: 分块路径没有任何可处理的分块。
- JobNotFound: 轮询未知或已被清理的请求 ID。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、job_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class CacheError(BusinessError):
    """存储层读写失败。ContentCache 会吞掉该异常并按 miss 处理。"""


class BackendError(BusinessError):
    """上游模型服务错误基类。"""


class BackendAuthError(BackendError):
    """401/403：API key 无效或无权限。"""


class BackendQuotaError(BackendError):
    """429/402：限流或额度耗尽，由调用方决定何时重试。"""


class BackendServerError(BackendError):
    """5xx：上游服务暂时不可用。"""


class BackendNetworkError(BackendError):
    """网络层错误，例如 DNS 失败、连接被拒绝、超时等。"""


class BackendApiError(BackendError):
    """其余非 2xx 响应。"""


class ChunkingExhaustedError(BusinessError):
    """大上下文分块后没有任何分块可处理。"""


class JobNotFound(BusinessError):
    """请求 ID 不存在（从未提交或已被清理任务删除）。"""

    def __init__(self, job_id: str):
        super().__init__(code="JOB_NOT_FOUND", message=f"Request {job_id} not found", http_status=404, job_id=job_id)


_TIPS = {
    BackendAuthError: "Tip: Check if your API key is valid and active.",
    BackendQuotaError: "Tip: You have hit rate limits. Please wait before trying again.",
    BackendServerError: "Tip: This is a server error. The API service may be temporarily unavailable.",
}


def error_for_status(status: int, provider: str, detail: Optional[str] = None) -> BackendError:
    """根据 HTTP 状态码构造对应的 BackendError，并附加提示文本。"""

    if status in (401, 403):
        cls, code = BackendAuthError, "AUTH_ERROR"
    elif status in (402, 429):
        cls, code = BackendQuotaError, "RATE_LIMIT"
    elif status >= 500:
        cls, code = BackendServerError, "SERVER_ERROR"
    else:
        cls, code = BackendApiError, "API_ERROR"

    message = f"{provider} API request failed ({status})"
    if detail:
        message += f": {detail}"
    tip = _TIPS.get(cls)
    if tip:
        message += f"\n\n{tip}"
    return cls(code=code, message=message, http_status=status, provider=provider)


def network_error(provider: str, detail: str) -> BackendNetworkError:
    return BackendNetworkError(
        code="NETWORK_ERROR",
        message=(
            f"Network error: Unable to connect to {provider} API. "
            f"Check your internet connection. ({detail})"
        ),
        http_status=503,
        provider=provider,
    )
