"""Structured output schema for search insights responses."""

from typing import Annotated, List

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

MAX_LIST_ITEMS = 20
MAX_ANOMALIES = 50
MAX_TEXT_CHARS = 500

BoundedText = Annotated[str, StringConstraints(strict=True, max_length=MAX_TEXT_CHARS)]


class AnomalyNote(BaseModel):
    """One unusual day as explained by the analysis service."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    date: str = Field(strict=True, max_length=20)
    metric: str = Field(strict=True, max_length=50)
    change: str = Field(strict=True, max_length=200)
    explanation: str = Field(strict=True, max_length=MAX_TEXT_CHARS)


class InsightsResponse(BaseModel):
    """Only allowed output contract for the insights endpoint."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    insights: List[BoundedText] = Field(max_length=MAX_LIST_ITEMS)
    anomalies: List[AnomalyNote] = Field(max_length=MAX_ANOMALIES)
    opportunities: List[BoundedText] = Field(max_length=MAX_LIST_ITEMS)
    questions: List[BoundedText] = Field(max_length=MAX_LIST_ITEMS)
