"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
优先级（高 -> 低）：构造参数 > 环境变量 > .env > config.yaml。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from summarizer_core.domain.models import Language


CONFIG_FILE_ENV = "SUMMARIZER_CONFIG_FILE"


def _config_file_candidates() -> List[Path]:
    """显式指定的文件优先，其次是当前目录与项目根目录下的 config.yaml。"""
    explicit = os.getenv(CONFIG_FILE_ENV)
    paths = [Path(explicit).expanduser()] if explicit else []
    paths += [Path.cwd() / "config.yaml", Path(__file__).resolve().parents[2] / "config.yaml"]
    return list(dict.fromkeys(paths))


def _read_yaml_mapping(path: Path) -> Optional[Dict[str, Any]]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"Cannot load settings from {path}: {exc}")
        return None
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        warnings.warn(f"Settings file {path} must contain a mapping, skipped")
        return None
    return raw


def _load_config_from_yaml() -> Dict[str, Any]:
    """返回第一个可用 YAML 配置文件的内容，没有则返回空字典。"""
    for path in _config_file_candidates():
        if path.is_file():
            data = _read_yaml_mapping(path)
            if data is not None:
                return data
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Backend 相关配置 ----
    llm_provider: str = Field(default="portkey", description="Provider 名称：portkey、openrouter 或 claude")
    llm_api_key: Optional[str] = Field(default=None, description="Provider API 密钥")
    llm_api_url: Optional[str] = Field(default=None, description="自定义 API 基础URL")
    llm_virtual_key: Optional[str] = Field(default=None, description="Portkey virtual key")
    llm_model: Optional[str] = Field(default=None, description="模型标识，为空时使用 Provider 默认值")
    summary_language: Language = Field(default="chinese", description="默认输出语言")
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 存储与日志 ----
    storage_root: str = Field(default=".storage", description="存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 缓存 ----
    cache_max_entries: int = Field(default=100, ge=1, description="缓存最大条目数")
    cache_expiry_days: int = Field(default=1, ge=1, description="缓存过期天数")

    # ---- 请求生命周期 ----
    job_max_age_seconds: float = Field(default=30 * 60, gt=0, description="请求记录最长保留时间")
    job_sweep_interval_seconds: float = Field(default=5 * 60, gt=0, description="清理任务执行间隔")

    # ---- 大上下文 ----
    chunk_max_chars: int = Field(default=50_000, ge=1, description="每个分块的最大字符数")
    large_context_token_threshold: int = Field(
        default=100_000,
        ge=1,
        description="估算 token 超过该值时走分块 + 滚动摘要路径",
    )
    chat_context_tokens: Optional[int] = Field(
        default=None,
        ge=1,
        description="对话裁剪预算；为空时使用对应语言 PromptConfig.max_tokens",
    )
    custom_prompts: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="按语言覆盖 PromptConfig 字段，例如 {'english': {'temperature': 0.2}}",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("llm_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
