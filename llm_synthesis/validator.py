"""Validation of raw analysis-service replies.

A reply passes three gates in order: a character budget, JSON decoding of
a single top-level object, and the bounded ``InsightsResponse`` schema.
"""

import json
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from llm_synthesis.schema import InsightsResponse

DEFAULT_MAX_RESPONSE_CHARS = 50_000

# Kept on the error for logging; replies can be large.
_EXCERPT_CHARS = 200

_FENCED_BLOCK = re.compile(r"^```[a-zA-Z]*\s*\n?(?P<body>.*?)\n?\s*```$", re.DOTALL)


class LLMOutputValidationError(Exception):
    """A reply failed one of the validation gates.

    Attributes:
        stage: "size", "json_parse" or "schema".
        errors: One readable line per problem found.
        raw_response: The leading part of the offending reply.
    """

    def __init__(self, stage: str, errors: List[str], raw_response: str) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response[:_EXCERPT_CHARS]
        super().__init__(f"Insights response rejected at '{stage}': " + "; ".join(errors))


def _unwrap_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _FENCED_BLOCK.match(stripped)
    return match.group("body").strip() if match else stripped


def _decode_object(text: str, raw_response: str) -> Dict[str, Any]:
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LLMOutputValidationError(
            stage="json_parse",
            errors=[f"{exc.msg} at line {exc.lineno} column {exc.colno}"],
            raw_response=raw_response,
        ) from exc

    if not isinstance(decoded, dict):
        raise LLMOutputValidationError(
            stage="schema",
            errors=[f"expected a JSON object, got {type(decoded).__name__}"],
            raw_response=raw_response,
        )
    return decoded


def _describe(exc: ValidationError) -> List[str]:
    lines = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        lines.append(f"{location}: {item['msg']}")
    return lines


def validate_insights_output(
    raw_response: str,
    max_chars: int = DEFAULT_MAX_RESPONSE_CHARS,
) -> InsightsResponse:
    """Turn a raw reply into an ``InsightsResponse`` or raise.

    Optional markdown code fences around the JSON are tolerated. Unknown
    keys, over-long strings and over-long lists are schema failures.

    Raises:
        LLMOutputValidationError: with the failing ``stage``.
    """
    if len(raw_response) > max_chars:
        raise LLMOutputValidationError(
            stage="size",
            errors=[f"reply has {len(raw_response)} characters; the limit is {max_chars}"],
            raw_response=raw_response,
        )

    document = _decode_object(_unwrap_code_fence(raw_response), raw_response)

    try:
        return InsightsResponse.model_validate(document)
    except ValidationError as exc:
        raise LLMOutputValidationError(
            stage="schema",
            errors=_describe(exc),
            raw_response=raw_response,
        ) from exc
