"""Retry logic for insights generation.

Retries transient transport failures (timeout, unavailable) and
formatting failures (JSON parse, schema) with exponential backoff.
Authentication, quota and configuration failures are raised immediately.
"""

import logging
import time
from typing import Callable, List

from llm_synthesis.adapter import BaseLLMAdapter
from llm_synthesis.errors import (
    AnalysisResponseError,
    AnalysisRetryExhaustedError,
    AnalysisTimeoutError,
    AnalysisUnavailableError,
)
from llm_synthesis.schema import InsightsResponse
from llm_synthesis.validator import (
    DEFAULT_MAX_RESPONSE_CHARS,
    LLMOutputValidationError,
    validate_insights_output,
)

logger = logging.getLogger(__name__)

_RETRYABLE_STAGES = frozenset({"json_parse", "schema"})
_RETRYABLE_ERRORS = (AnalysisTimeoutError, AnalysisUnavailableError, AnalysisResponseError)


def backoff_delay(attempt: int, initial: float = 1.0, multiplier: float = 2.0) -> float:
    """Delay before retry number ``attempt`` (1-based): initial × multiplier^(attempt-1)."""
    return initial * (multiplier ** (attempt - 1))


def generate_with_retry(
    adapter: BaseLLMAdapter,
    prompt: str,
    max_retries: int = 1,
    backoff_initial: float = 1.0,
    backoff_multiplier: float = 2.0,
    max_response_chars: int = DEFAULT_MAX_RESPONSE_CHARS,
    sleep: Callable[[float], None] = time.sleep,
) -> InsightsResponse:
    """Generate and validate an insights response, retrying transient failures.

    Args:
        adapter: An LLM adapter implementing ``generate(prompt) -> str``.
        prompt: The fully formatted prompt string.
        max_retries: Maximum number of *additional* attempts after the
            first failure. Total attempts = 1 + max_retries.
        backoff_initial: Delay in seconds before the first retry.
        backoff_multiplier: Factor applied to the delay on each retry.
        max_response_chars: Passed through to the validator.
        sleep: Injected for tests.

    Returns:
        A validated ``InsightsResponse`` instance.

    Raises:
        AnalysisAuthError, AnalysisQuotaError: never retried.
        LLMOutputValidationError: non-retryable validation stage ("size").
        AnalysisRetryExhaustedError: every attempt failed with a retryable error.
    """
    errors: List[Exception] = []
    total_attempts = 1 + max(0, max_retries)

    for attempt in range(1, total_attempts + 1):
        try:
            raw = adapter.generate(prompt)
            result = validate_insights_output(raw, max_chars=max_response_chars)
        except LLMOutputValidationError as exc:
            if exc.stage not in _RETRYABLE_STAGES:
                raise
            errors.append(exc)
            logger.warning(
                "Attempt %d/%d failed at stage '%s': %s",
                attempt,
                total_attempts,
                exc.stage,
                "; ".join(exc.errors),
            )
        except _RETRYABLE_ERRORS as exc:
            errors.append(exc)
            logger.warning(
                "Attempt %d/%d failed: %s",
                attempt,
                total_attempts,
                exc,
            )
        else:
            if attempt > 1:
                logger.info(
                    "LLM output validated on attempt %d/%d",
                    attempt,
                    total_attempts,
                )
            return result

        if attempt < total_attempts:
            delay = backoff_delay(attempt, backoff_initial, backoff_multiplier)
            logger.info("Retrying in %.1fs", delay)
            sleep(delay)

    raise AnalysisRetryExhaustedError(
        attempts=total_attempts,
        last_error=errors[-1],
        history=errors,
    )
