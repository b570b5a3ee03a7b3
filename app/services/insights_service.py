"""
app/services/insights_service.py

Composes the cached aggregates, the range summary and the analysis call
into one insights request.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache

from app.config import LLMSettings, get_llm_settings, get_summary_settings
from app.domain.insights import InsightsPayload
from app.errors import EmptyRangeError, RangeTooLargeError
from app.logging_utils import log_event
from app.services.range_summarizer import RangeSummarizer, get_range_summarizer
from app.services.rebuild_coordinator import RebuildCoordinator, get_rebuild_coordinator
from llm_synthesis.adapter import BaseLLMAdapter, build_adapter
from llm_synthesis.prompt_builder import InsightsPromptBuilder
from llm_synthesis.retry import generate_with_retry
from llm_synthesis.schema import InsightsResponse

logger = logging.getLogger(__name__)


def payload_size_bytes(payload: InsightsPayload) -> int:
    """
    Size of the payload as compact UTF-8 JSON, the form that is admitted.
    """
    encoded = json.dumps(payload.to_dict(), separators=(",", ":"), ensure_ascii=False)
    return len(encoded.encode("utf-8"))


class InsightsService:
    """
    Builds a bounded summary for a window and asks the analysis service about it.
    """

    def __init__(
        self,
        *,
        coordinator: RebuildCoordinator,
        summarizer: RangeSummarizer,
        adapter: BaseLLMAdapter,
        llm_settings: LLMSettings,
        max_payload_bytes: int = 30_000,
        prompt_builder: InsightsPromptBuilder | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._summarizer = summarizer
        self._adapter = adapter
        self._llm_settings = llm_settings
        self._max_payload_bytes = max_payload_bytes
        self._prompt_builder = prompt_builder or InsightsPromptBuilder()

    def build_payload(self, start: str, end: str) -> InsightsPayload:
        """
        Summarize ``[start, end]`` and check it against the size bound.

        Raises:
            EmptyRangeError: no aggregates fall in the window.
            RangeTooLargeError: the compact JSON exceeds ``max_payload_bytes``.
        """
        aggregates = self._coordinator.get_or_build()
        window = self._summarizer.filter_by_range(aggregates, start, end)
        if not window:
            raise EmptyRangeError(f"No data available for the selected date range ({start} to {end}).")

        payload = self._summarizer.summarize(window, start, end)
        size = payload_size_bytes(payload)
        if size > self._max_payload_bytes:
            raise RangeTooLargeError(payload_bytes=size, max_bytes=self._max_payload_bytes)

        log_event(
            logger,
            logging.INFO,
            "insights_payload_built",
            start=start,
            end=end,
            days=len(window),
            series_points=len(payload.series),
            anomalies=len(payload.anomalies),
            payload_bytes=size,
        )
        return payload

    def generate_insights(self, start: str, end: str) -> InsightsResponse:
        payload = self.build_payload(start, end)
        prompt = self._prompt_builder.build_prompt(payload.to_dict())
        settings = self._llm_settings
        return generate_with_retry(
            self._adapter,
            prompt,
            max_retries=settings.max_retries,
            backoff_initial=settings.backoff_initial_seconds,
            backoff_multiplier=settings.backoff_multiplier,
            max_response_chars=settings.max_response_chars,
        )


@lru_cache(maxsize=1)
def get_insights_service() -> InsightsService:
    llm_settings = get_llm_settings()
    return InsightsService(
        coordinator=get_rebuild_coordinator(),
        summarizer=get_range_summarizer(),
        adapter=build_adapter(llm_settings),
        llm_settings=llm_settings,
        max_payload_bytes=get_summary_settings().max_payload_bytes,
    )
