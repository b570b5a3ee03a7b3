"""Exception taxonomy for calls to the external analysis service.

Adapters translate SDK-specific failures into these kinds so callers can
decide on retries and HTTP status without knowing which vendor is behind
the adapter.
"""

from typing import List, Optional


class AnalysisError(Exception):
    """Base exception for every analysis service failure."""


class AnalysisTimeoutError(AnalysisError):
    """The service did not answer within the configured timeout. Retryable."""


class AnalysisUnavailableError(AnalysisError):
    """Connection failure, 5xx or overload on the service side. Retryable."""


class AnalysisAuthError(AnalysisError):
    """The service rejected the credentials. Never retried."""


class AnalysisQuotaError(AnalysisError):
    """The service rate limit or quota was hit. Never retried."""


class AnalysisConfigurationError(AnalysisError):
    """The adapter cannot be built from the current settings."""


class AnalysisResponseError(AnalysisError):
    """The service answered with something other than usable text."""


class AnalysisRetryExhaustedError(AnalysisError):
    """Raised when every attempt failed with a retryable error.

    Attributes:
        attempts: Total number of attempts made (initial + retries).
        last_error: The error from the final attempt.
        history: Errors from every failed attempt, oldest first.
    """

    def __init__(
        self,
        attempts: int,
        last_error: Exception,
        history: Optional[List[Exception]] = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.history = history or [last_error]
        super().__init__(
            f"Analysis failed after {attempts} attempt(s). Last error: {last_error}"
        )
