"""统一的消息、请求与结果数据模型。

本模块定义了各层之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- CompletionOptions: 一次补全调用的生成参数。
- BackendParams: 调用方指定的 Backend 连接参数（provider、key、模型等）。
- SummarizeRequest / ChatRequest: 提交给 RequestRegistry 的任务描述。
- LLMResponse: 任务成功后的结果（含是否命中缓存）。
- Job: RequestRegistry 跟踪的单个异步任务。
- CacheEntry / CacheConfig: 内容缓存的条目与配置。
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from summarizer_core.domain.exceptions import ValidationError


Role = Literal["system", "user", "assistant"]
Language = Literal["chinese", "english"]
JobStatus = Literal["pending", "processing", "completed", "error"]

# 允许的状态迁移：pending -> processing -> {completed | error}
_TRANSITIONS: Dict[str, tuple] = {
    "pending": ("processing",),
    "processing": ("completed", "error"),
    "completed": (),
    "error": (),
}


def now_ms() -> int:
    """当前时间（毫秒）。"""

    return int(time.time() * 1000)


@dataclass
class ChatMessage:
    """一条对话消息。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ChatMessage":
        role = data.get("role")
        if role not in ("system", "user", "assistant"):
            raise ValidationError(code="INVALID_ROLE", message=f"Unsupported message role: {role!r}")
        return cls(role=role, content=str(data.get("content") or ""))


@dataclass
class CompletionOptions:
    """补全调用参数。model 为空时由 Provider 使用默认模型。"""

    max_tokens: int
    temperature: float
    model: Optional[str] = None


@dataclass
class BackendParams:
    """一次请求使用的 Backend 连接参数。"""

    provider: str
    api_key: Optional[str] = None
    api_url: Optional[str] = None
    virtual_key: Optional[str] = None
    model: Optional[str] = None
    timeout: float = 30.0


@dataclass
class SummarizeRequest:
    """摘要任务：把 text 交给模型总结，resource_id 存在时参与缓存。"""

    text: str
    resource_id: Optional[str] = None
    language: Language = "chinese"
    force_fresh: bool = False
    backend: Optional[BackendParams] = None
    custom_prompts: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass
class ChatRequest:
    """对话任务：messages 为完整历史，session_key 存在时记录会话上下文。"""

    messages: List[ChatMessage]
    session_key: Optional[str] = None
    language: Language = "chinese"
    backend: Optional[BackendParams] = None
    custom_prompts: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass
class LLMResponse:
    """任务结果。from_cache 为 True 时 cached_at 为缓存写入时间（毫秒）。"""

    payload: str
    from_cache: bool = False
    cached_at: Optional[int] = None
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"payload": self.payload, "fromCache": self.from_cache}
        if self.cached_at is not None:
            data["cachedAt"] = self.cached_at
        return data


@dataclass
class Job:
    """RequestRegistry 中的一条任务记录。

    - id: req_<毫秒时间戳>_<随机串>。
    - origin_key: 发起方标识（如页面 URL、会话 key），仅用于日志与展示。
    - status: 只能按 pending -> processing -> completed/error 单向迁移。
    - created_at: 创建时间（毫秒），清理任务据此判断是否过期。
    """

    id: str
    origin_key: str
    status: JobStatus = "pending"
    result: Optional[LLMResponse] = None
    error: Optional[str] = None
    created_at: int = field(default_factory=now_ms)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "error")

    def advance(self, status: JobStatus) -> None:
        """迁移到下一个状态，非法迁移抛出 ValidationError。"""

        if status not in _TRANSITIONS[self.status]:
            raise ValidationError(
                code="INVALID_TRANSITION",
                message=f"Job {self.id}: {self.status} -> {status} is not allowed",
            )
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "originKey": self.origin_key,
            "status": self.status,
            "createdAt": self.created_at,
        }
        if self.result is not None:
            data["result"] = self.result.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class CacheEntry:
    """缓存条目；key = resource_id + "|" + language。"""

    resource_id: str
    language: str
    payload: str
    model: str
    created_at: int

    @property
    def key(self) -> str:
        return cache_key(self.resource_id, self.language)

    def to_record(self) -> Dict[str, Any]:
        return {
            "resourceId": self.resource_id,
            "language": self.language,
            "payload": self.payload,
            "model": self.model,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            resource_id=str(data["resourceId"]),
            language=str(data["language"]),
            payload=str(data["payload"]),
            model=str(data.get("model") or ""),
            created_at=int(data["createdAt"]),
        )


class CacheConfig(BaseModel):
    """缓存配置，来自持久化的设置记录或 Settings 默认值。"""

    max_entries: int = Field(default=100, ge=1)
    expiry_days: int = Field(default=1, ge=1)

    @property
    def expiry_ms(self) -> int:
        return self.expiry_days * 24 * 60 * 60 * 1000


def cache_key(resource_id: str, language: str) -> str:
    return f"{resource_id}|{language}"
