"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

_ALLOWED_LLM_ADAPTERS = {"anthropic", "openai", "mock"}


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    for filename in (".env", ".env.local"):
        env_path = PROJECT_ROOT / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _resolve_path(raw: str) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


@dataclass(frozen=True)
class DataSourceSettings:
    """
    Location and tolerance settings for the CSV export and its snapshot.
    """

    csv_path: Path
    snapshot_path: Path
    date_column: str = "analytics_date"
    max_row_errors: int = 100
    log_row_errors: bool = True
    max_logged_row_errors: int = 20
    upload_max_bytes: int = 500 * 1024 * 1024


@dataclass(frozen=True)
class SummarySettings:
    """
    Bounds applied when summarizing a date window.
    """

    max_points: int = 60
    anomaly_z_threshold: float = 2.0
    max_payload_bytes: int = 30_000
    data_max_range_days: int = 730
    insights_max_range_days: int = 365
    data_warn_range_days: int = 365
    data_default_range_days: int = 30


@dataclass(frozen=True)
class RateLimitSettings:
    """
    Token bucket settings for the insights endpoint.
    """

    capacity: int = 10
    refill_per_minute: float = 10.0
    idle_ttl_seconds: float = 600.0
    sweep_interval_seconds: int = 600


@dataclass(frozen=True)
class LLMSettings:
    """
    External analysis service settings.
    """

    adapter: str = "anthropic"
    model: str = "claude-3-5-sonnet-20241022"
    max_tokens: int = 2048
    temperature: float = 0.7
    timeout_seconds: float = 30.0
    max_retries: int = 1
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_response_chars: int = 50_000
    api_key: str | None = None
    base_url: str | None = None


@lru_cache(maxsize=1)
def get_data_source_settings() -> DataSourceSettings:
    """
    Return cached data source settings from environment variables.
    """

    return DataSourceSettings(
        csv_path=_resolve_path(_get_str_env("CSV_FILE_PATH", "uploaded-data/arckeywords.csv")),
        snapshot_path=_resolve_path(_get_str_env("SNAPSHOT_PATH", ".data-cache/daily-aggregates.json")),
        date_column=_get_str_env("CSV_DATE_COLUMN", "analytics_date"),
        max_row_errors=max(0, _get_int_env("CSV_MAX_ROW_ERRORS", 100)),
        log_row_errors=_get_bool_env("CSV_LOG_ROW_ERRORS", True),
        max_logged_row_errors=max(0, _get_int_env("CSV_MAX_LOGGED_ROW_ERRORS", 20)),
        upload_max_bytes=max(1, _get_int_env("UPLOAD_MAX_BYTES", 500 * 1024 * 1024)),
    )


@lru_cache(maxsize=1)
def get_summary_settings() -> SummarySettings:
    """
    Return cached summarization settings from environment variables.
    """

    return SummarySettings(
        max_points=max(2, _get_int_env("INSIGHTS_MAX_POINTS", 60)),
        anomaly_z_threshold=max(0.0, _get_float_env("INSIGHTS_ANOMALY_Z_THRESHOLD", 2.0)),
        max_payload_bytes=max(1, _get_int_env("INSIGHTS_MAX_PAYLOAD_BYTES", 30_000)),
        data_max_range_days=max(1, _get_int_env("DATA_MAX_RANGE_DAYS", 730)),
        insights_max_range_days=max(1, _get_int_env("INSIGHTS_MAX_RANGE_DAYS", 365)),
        data_warn_range_days=max(1, _get_int_env("DATA_WARN_RANGE_DAYS", 365)),
        data_default_range_days=max(1, _get_int_env("DATA_DEFAULT_RANGE_DAYS", 30)),
    )


@lru_cache(maxsize=1)
def get_rate_limit_settings() -> RateLimitSettings:
    """
    Return cached rate limit settings from environment variables.
    """

    return RateLimitSettings(
        capacity=max(1, _get_int_env("INSIGHTS_RATE_LIMIT_CAPACITY", 10)),
        refill_per_minute=max(0.0, _get_float_env("INSIGHTS_RATE_LIMIT_REFILL_PER_MINUTE", 10.0)),
        idle_ttl_seconds=max(1.0, _get_float_env("INSIGHTS_RATE_LIMIT_IDLE_TTL_SECONDS", 600.0)),
        sweep_interval_seconds=max(1, _get_int_env("INSIGHTS_RATE_LIMIT_SWEEP_SECONDS", 600)),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return cached LLM settings from environment variables.

    The API key is resolved per adapter: ANTHROPIC_API_KEY for the
    Anthropic adapter, LLM_API_KEY or OPENAI_API_KEY for the OpenAI one.
    """

    adapter = _get_str_env("LLM_ADAPTER", "anthropic").lower()
    if adapter == "openai":
        api_key = _get_optional_str_env("LLM_API_KEY") or _get_optional_str_env("OPENAI_API_KEY")
        default_model = "gpt-4o-mini"
    else:
        api_key = _get_optional_str_env("ANTHROPIC_API_KEY")
        default_model = "claude-3-5-sonnet-20241022"

    return LLMSettings(
        adapter=adapter,
        model=_get_str_env("LLM_MODEL", _get_str_env("ANTHROPIC_MODEL", default_model)),
        max_tokens=max(1, _get_int_env("LLM_MAX_TOKENS", 2048)),
        temperature=min(1.0, max(0.0, _get_float_env("LLM_TEMPERATURE", 0.7))),
        timeout_seconds=max(1.0, _get_float_env("LLM_TIMEOUT_SECONDS", 30.0)),
        max_retries=max(0, _get_int_env("LLM_MAX_RETRIES", 1)),
        backoff_initial_seconds=max(0.0, _get_float_env("LLM_BACKOFF_INITIAL_SECONDS", 1.0)),
        backoff_multiplier=max(1.0, _get_float_env("LLM_BACKOFF_MULTIPLIER", 2.0)),
        max_response_chars=max(1, _get_int_env("LLM_MAX_RESPONSE_CHARS", 50_000)),
        api_key=api_key,
        base_url=_get_optional_str_env("LLM_BASE_URL"),
    )


def allowed_llm_adapters() -> set[str]:
    return set(_ALLOWED_LLM_ADAPTERS)
