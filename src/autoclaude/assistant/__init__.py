"""Coding assistant integration.

Runs the assistant CLI as a subprocess, builds its prompts, and extracts the
structured Analysis verdict from its free-text replies.
"""

from autoclaude.assistant.analysis import (
    Analysis,
    AnalysisParseResult,
    Complexity,
    Confidence,
    extract_json_object,
    normalize_newlines,
    parse_analysis,
)
from autoclaude.assistant.invoker import (
    AssistantError,
    AssistantInvoker,
    AssistantNonZeroExitError,
    AssistantSpawnError,
    AssistantTimeoutError,
)
from autoclaude.assistant.prompts import build_analysis_prompt, build_fix_prompt

__all__ = [
    "Analysis",
    "AnalysisParseResult",
    "AssistantError",
    "AssistantInvoker",
    "AssistantNonZeroExitError",
    "AssistantSpawnError",
    "AssistantTimeoutError",
    "Complexity",
    "Confidence",
    "build_analysis_prompt",
    "build_fix_prompt",
    "extract_json_object",
    "normalize_newlines",
    "parse_analysis",
]
