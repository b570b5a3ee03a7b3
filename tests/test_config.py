"""
tests/test_config.py

Pytest tests for env-driven settings and startup validation.
"""

from __future__ import annotations

import pytest

from app.config import get_llm_settings, get_rate_limit_settings
from app.main import _validate_env


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_llm_settings.cache_clear()
    get_rate_limit_settings.cache_clear()
    yield
    get_llm_settings.cache_clear()
    get_rate_limit_settings.cache_clear()


class TestLLMSettings:
    def test_openai_key_fallback_and_default_model(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_ADAPTER", "OpenAI")
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        monkeypatch.delenv("LLM_MODEL", raising=False)
        monkeypatch.delenv("ANTHROPIC_MODEL", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        settings = get_llm_settings()

        assert settings.adapter == "openai"
        assert settings.api_key == "sk-test"
        assert settings.model == "gpt-4o-mini"

    def test_numeric_values_are_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_TEMPERATURE", "7")
        monkeypatch.setenv("LLM_MAX_RETRIES", "-3")
        monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "not-a-number")

        settings = get_llm_settings()

        assert settings.temperature == 1.0
        assert settings.max_retries == 0
        assert settings.timeout_seconds == 30.0


class TestRateLimitSettings:
    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("INSIGHTS_RATE_LIMIT_CAPACITY", "3")
        monkeypatch.setenv("INSIGHTS_RATE_LIMIT_REFILL_PER_MINUTE", "1.5")
        settings = get_rate_limit_settings()
        assert settings.capacity == 3
        assert settings.refill_per_minute == 1.5


class TestValidateEnv:
    def test_mock_adapter_needs_no_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_ADAPTER", "mock")
        _validate_env()

    def test_reports_every_problem_at_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_ADAPTER", "anthropic")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "  ")
        monkeypatch.setenv("UPLOAD_MAX_BYTES", "-1")
        monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "soon")

        with pytest.raises(RuntimeError) as excinfo:
            _validate_env()

        message = str(excinfo.value)
        assert "ANTHROPIC_API_KEY" in message
        assert "UPLOAD_MAX_BYTES" in message
        assert "LLM_TIMEOUT_SECONDS" in message

    def test_unknown_adapter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_ADAPTER", "llama")
        with pytest.raises(RuntimeError, match="LLM_ADAPTER='llama'"):
            _validate_env()
