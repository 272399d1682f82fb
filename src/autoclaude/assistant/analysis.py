"""Analysis verdict model and extraction from assistant output.

The assistant is asked to answer with a bare JSON object, but in practice
it often wraps the object in prose or markdown fences. parse_analysis scans
the free text for the first brace-balanced substring that decodes to a JSON
object and validates it into an Analysis.

Expected shape (camelCase keys, as requested in the analysis prompt):
{
  "canResolve": true,
  "confidence": "high",
  "reason": "...",
  "approach": "...",
  "estimatedComplexity": "simple"
}
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


def normalize_newlines(text: str) -> str:
    """Turn escaped newline sequences into literal newlines.

    Assistants sometimes double-escape newlines inside JSON strings, which
    would otherwise show up as a literal backslash-n in posted comments.
    """
    return text.replace("\\r\\n", "\n").replace("\\n", "\n")


def _normalize_choice(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, Enum):
        return str(v.value)
    return str(v).strip().lower()


class Analysis(BaseModel):
    """Structured verdict on whether an item can be resolved automatically.

    Attributes:
        can_resolve: True when the assistant believes it can fix the item.
        confidence: How sure the assistant is of the verdict.
        reason: Short explanation of the verdict.
        approach: Planned fix; may be empty when can_resolve is False.
        estimated_complexity: Rough size of the change.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    can_resolve: bool = Field(..., alias="canResolve", strict=True)

    confidence: Confidence = Confidence.LOW

    reason: str = ""

    approach: str = ""

    estimated_complexity: Complexity = Field(
        default=Complexity.COMPLEX, alias="estimatedComplexity"
    )

    @field_validator("can_resolve", mode="before")
    @classmethod
    def coerce_boolean_strings(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in ("true", "false"):
            return v.strip().lower() == "true"
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, v: Any) -> Any:
        value = _normalize_choice(v)
        if value not in {c.value for c in Confidence}:
            logger.warning(
                "Invalid confidence from assistant, defaulting to low",
                extra={"received_confidence": v},
            )
            return Confidence.LOW
        return value

    @field_validator("estimated_complexity", mode="before")
    @classmethod
    def normalize_complexity(cls, v: Any) -> Any:
        value = _normalize_choice(v)
        if value not in {c.value for c in Complexity}:
            logger.warning(
                "Invalid complexity from assistant, defaulting to complex",
                extra={"received_complexity": v},
            )
            return Complexity.COMPLEX
        return value

    @field_validator("reason", "approach", mode="before")
    @classmethod
    def normalize_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return normalize_newlines(str(v)).strip()

    def to_dict(self) -> dict:
        """Serialize using the wire (camelCase) field names."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True)
class AnalysisParseResult:
    """Result of extracting an Analysis from free text.

    Exactly one of analysis and error is set: an Ok result carries the
    Analysis, a Malformed result carries the reason parsing failed.
    """

    analysis: Optional[Analysis] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.analysis is not None

    @classmethod
    def malformed(cls, error: str) -> "AnalysisParseResult":
        return cls(analysis=None, error=error)


def iter_json_objects(text: str) -> Iterator[str]:
    """Yield brace-balanced substrings of text, in order of their start.

    Braces inside JSON string literals (including escaped quotes) do not
    count toward the balance. Unbalanced openings are skipped.
    """
    start = text.find("{")
    while start != -1:
        end = _find_matching_brace(text, start)
        if end is not None:
            yield text[start : end + 1]
        start = text.find("{", start + 1)


def _find_matching_brace(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index

    return None


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """Return the first brace-balanced substring that decodes to an object."""
    for candidate in iter_json_objects(text):
        try:
            decoded = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(decoded, dict):
            return decoded
    return None


def parse_analysis(text: str) -> AnalysisParseResult:
    """Parse an Analysis out of the assistant's free-text reply.

    Args:
        text: Raw assistant output.

    Returns:
        AnalysisParseResult with the analysis, or with an error message
        when no usable JSON object is present.
    """
    data = extract_json_object(text or "")
    if data is None:
        logger.warning(
            "No JSON found in assistant response",
            extra={"response_preview": (text or "")[:200]},
        )
        return AnalysisParseResult.malformed("No JSON found in response")

    try:
        analysis = Analysis.model_validate(data)
    except ValidationError as exc:
        logger.warning(
            "Assistant response failed validation",
            extra={"error": str(exc), "response_preview": (text or "")[:200]},
        )
        return AnalysisParseResult.malformed(
            f"Invalid analysis response: {_summarize_validation_error(exc)}"
        )

    return AnalysisParseResult(analysis=analysis)


def _summarize_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)
