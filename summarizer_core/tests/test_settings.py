import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from summarizer_core.config.settings import Settings


def test_yaml_file_supplies_defaults(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        path = Path(d) / "summarizer.yaml"
        path.write_text(
            "cache_max_entries: 7\nllm_provider: openrouter\ncustom_prompts:\n  english:\n    temperature: 0.2\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("SUMMARIZER_CONFIG_FILE", str(path))
        monkeypatch.delenv("LLM_PROVIDER", raising=False)
        monkeypatch.delenv("CACHE_MAX_ENTRIES", raising=False)

        cfg = Settings()
        assert cfg.cache_max_entries == 7
        assert cfg.llm_provider == "openrouter"
        assert cfg.custom_prompts == {"english": {"temperature": 0.2}}

        # 环境变量优先于 YAML
        monkeypatch.setenv("CACHE_MAX_ENTRIES", "3")
        assert Settings().cache_max_entries == 3


def test_defaults_without_config_file(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        monkeypatch.chdir(d)
        monkeypatch.setenv("SUMMARIZER_CONFIG_FILE", str(Path(d) / "missing.yaml"))
        cfg = Settings(llm_provider="portkey")
        assert cfg.summary_language in ("chinese", "english")
        assert cfg.job_max_age_seconds > 0
        assert cfg.chunk_max_chars >= 1


def test_invalid_values_rejected():
    with pytest.raises(PydanticValidationError):
        Settings(llm_api_key="short")
    with pytest.raises(PydanticValidationError):
        Settings(cache_expiry_days=0)
