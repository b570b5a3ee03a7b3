"""LLM adapters for search insights generation.

Provides a base interface, concrete adapters for the Anthropic Messages API
and OpenAI-compatible chat completion APIs, and a deterministic mock for
testing. Every adapter raises only the kinds in ``llm_synthesis.errors``.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import anthropic
import openai

from app.config import LLMSettings
from llm_synthesis.errors import (
    AnalysisAuthError,
    AnalysisConfigurationError,
    AnalysisQuotaError,
    AnalysisResponseError,
    AnalysisTimeoutError,
    AnalysisUnavailableError,
)

logger = logging.getLogger(__name__)


class BaseLLMAdapter(ABC):
    """Abstract base for all LLM adapters."""

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Send a prompt to the LLM and return the raw response text.

        Args:
            prompt: The fully formatted prompt string.

        Returns:
            Raw string response from the model (expected to be JSON).

        Raises:
            AnalysisTimeoutError, AnalysisUnavailableError: transient failures.
            AnalysisAuthError, AnalysisQuotaError: permanent failures.
            AnalysisResponseError: the reply carried no text.
        """


class AnthropicLLMAdapter(BaseLLMAdapter):
    """Adapter for the Anthropic Messages API.

    SDK-level retries are disabled; retry policy lives in
    ``llm_synthesis.retry`` so that attempts are counted in one place.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        max_tokens: int = 2048,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
        base_url: Optional[str] = None,
    ) -> None:
        client_kwargs: dict = {
            "api_key": api_key,
            "timeout": timeout_seconds,
            "max_retries": 0,
        }
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = anthropic.Anthropic(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout_seconds = timeout_seconds

    def generate(self, prompt: str) -> str:
        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APITimeoutError as exc:
            raise AnalysisTimeoutError(
                f"The AI service request timed out after {self._timeout_seconds:g} seconds."
            ) from exc
        except anthropic.APIConnectionError as exc:
            raise AnalysisUnavailableError("Could not connect to the AI service.") from exc
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as exc:
            raise AnalysisAuthError("AI service authentication failed.") from exc
        except anthropic.RateLimitError as exc:
            raise AnalysisQuotaError("AI service rate limit exceeded.") from exc
        except anthropic.APIStatusError as exc:
            raise _classify_status(exc.status_code) from exc

        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        raise AnalysisResponseError("Unexpected response type from the AI service.")


class OpenAILLMAdapter(BaseLLMAdapter):
    """Adapter for OpenAI-compatible chat completion APIs."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        max_tokens: int = 2048,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
        base_url: Optional[str] = None,
    ) -> None:
        client_kwargs: dict = {
            "api_key": api_key,
            "timeout": timeout_seconds,
            "max_retries": 0,
        }
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = openai.OpenAI(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout_seconds = timeout_seconds

    def generate(self, prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                stream=False,
            )
        except openai.APITimeoutError as exc:
            raise AnalysisTimeoutError(
                f"The AI service request timed out after {self._timeout_seconds:g} seconds."
            ) from exc
        except openai.APIConnectionError as exc:
            raise AnalysisUnavailableError("Could not connect to the AI service.") from exc
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise AnalysisAuthError("AI service authentication failed.") from exc
        except openai.RateLimitError as exc:
            raise AnalysisQuotaError("AI service rate limit exceeded.") from exc
        except openai.APIStatusError as exc:
            raise _classify_status(exc.status_code) from exc

        if not response.choices:
            raise AnalysisResponseError("The AI service returned no choices.")
        content = response.choices[0].message.content
        if not content:
            raise AnalysisResponseError("The AI service returned an empty message.")
        return content


def _classify_status(status_code: int) -> Exception:
    if status_code in (401, 403):
        return AnalysisAuthError("AI service authentication failed.")
    if status_code == 429:
        return AnalysisQuotaError("AI service rate limit exceeded.")
    if status_code in (408, 504):
        return AnalysisTimeoutError("The AI service request timed out.")
    if status_code >= 500:
        return AnalysisUnavailableError(f"The AI service is unavailable (status {status_code}).")
    return AnalysisResponseError(f"The AI service rejected the request (status {status_code}).")


# ---------------------------------------------------------------------------
# Fixed mock response used for local testing.
# ---------------------------------------------------------------------------
_MOCK_RESPONSE = {
    "insights": [
        "Clicks are broadly stable across the selected window.",
        "Average position held steady while impressions grew.",
        "Click-through rate tracks impressions closely.",
    ],
    "anomalies": [
        {
            "date": "2024-01-04",
            "metric": "clicks",
            "change": "Clicks roughly tripled versus the previous day.",
            "explanation": "Mock anomaly for testing purposes.",
        }
    ],
    "opportunities": [
        "Review pages that gained impressions without gaining clicks.",
        "Refresh titles on queries ranking just outside the top positions.",
    ],
    "questions": [
        "Did a campaign or release coincide with the spike?",
        "Are mobile and desktop trends moving together?",
    ],
}

_MOCK_RESPONSE_JSON = json.dumps(_MOCK_RESPONSE, indent=2)


class MockLLMAdapter(BaseLLMAdapter):
    """Deterministic adapter that returns a fixed valid JSON response.

    Used for local testing and CI pipelines where no LLM API
    is available.
    """

    def generate(self, prompt: str) -> str:
        return _MOCK_RESPONSE_JSON


def build_adapter(settings: LLMSettings) -> BaseLLMAdapter:
    """Instantiate the adapter named by ``settings.adapter``.

    Raises:
        AnalysisConfigurationError: unknown adapter or missing API key.
    """
    name = settings.adapter
    if name == "mock":
        return MockLLMAdapter()

    if name not in ("anthropic", "openai"):
        raise AnalysisConfigurationError(f"Unknown LLM adapter: {name!r}")
    if not settings.api_key:
        raise AnalysisConfigurationError(f"No API key configured for the {name} adapter.")

    adapter_cls = AnthropicLLMAdapter if name == "anthropic" else OpenAILLMAdapter
    logger.info("Using %s adapter model=%s", name, settings.model)
    return adapter_cls(
        api_key=settings.api_key,
        model=settings.model,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        timeout_seconds=settings.timeout_seconds,
        base_url=settings.base_url,
    )
