"""Prompt builders for the analysis and fix assistant calls.

Both prompts embed the same item context: the item number and title, plus
the comment body for PR-comment runs or the issue body otherwise.
"""

from autoclaude.assistant.analysis import Analysis
from autoclaude.webhook.models import WorkItem

NO_DESCRIPTION = "(No description provided)"

ANALYSIS_RESPONSE_FORMAT = """Analyze this issue and respond in the following JSON format ONLY (no markdown, no code blocks, just raw JSON):
{
  "canResolve": true/false,
  "confidence": "high/medium/low",
  "reason": "Brief explanation of why this can or cannot be resolved automatically",
  "approach": "If canResolve is true, describe the approach to fix it. If false, leave empty.",
  "estimatedComplexity": "simple/moderate/complex"
}"""

RESOLUTION_RUBRIC = """An issue CAN be resolved automatically if:
- It's a clear bug with an obvious fix
- It's a simple feature addition with clear requirements
- It's a documentation update
- It's a refactoring task with clear scope
- It's a dependency update or version bump

An issue CANNOT be resolved automatically if:
- It requires clarification from the issue author
- It involves major architectural decisions
- It's vague or lacks sufficient detail
- It requires access to external systems or credentials
- It involves security-sensitive changes that need human review"""

DO_NOT_COMMIT_INSTRUCTION = (
    "IMPORTANT: Do NOT commit the changes. Only make file modifications. "
    "The commit will be handled externally."
)

COMMIT_INSTRUCTION = (
    "Commit your changes with a descriptive commit message once the fix "
    "is complete. Do not push."
)


def _uses_comment(item: WorkItem) -> bool:
    return item.is_pull_request and bool(item.comment_body)


def _task_description(item: WorkItem) -> str:
    if _uses_comment(item):
        return f"Comment requesting changes:\n{item.comment_body}"
    return f"Issue Body:\n{item.body or NO_DESCRIPTION}"


def _heading(item: WorkItem) -> str:
    label = "PR" if item.is_pull_request else "Issue"
    return f"{label} #{item.item_number}: {item.title}"


def build_analysis_prompt(item: WorkItem) -> str:
    """Build the prompt asking the assistant for a resolvability verdict.

    Args:
        item: The work item being analyzed.

    Returns:
        Prompt text requesting a raw JSON Analysis object.
    """
    if item.is_pull_request:
        context = (
            "You are analyzing a comment on a GitHub Pull Request to determine "
            "if the requested changes can be made automatically."
        )
    else:
        context = (
            "You are analyzing a GitHub issue to determine if it can be "
            "resolved automatically without human intervention."
        )

    return "\n\n".join(
        [
            context,
            _heading(item),
            _task_description(item),
            ANALYSIS_RESPONSE_FORMAT,
            RESOLUTION_RUBRIC,
        ]
    )


def build_fix_prompt(
    item: WorkItem,
    analysis: Analysis,
    commits_directly: bool = False,
) -> str:
    """Build the prompt asking the assistant to implement the fix.

    Args:
        item: The work item being fixed.
        analysis: The verdict from the analysis call; its approach is
            passed through to guide the fix.
        commits_directly: When True the assistant is told to commit its own
            changes instead of leaving them uncommitted.

    Returns:
        Prompt text for the fix call.
    """
    if _uses_comment(item):
        intro = (
            "You need to address the following comment/request on a GitHub "
            "Pull Request. Make the necessary code changes."
        )
    else:
        intro = (
            "You need to fix the following GitHub issue. "
            "Make the necessary code changes."
        )

    final_instruction = COMMIT_INSTRUCTION if commits_directly else DO_NOT_COMMIT_INSTRUCTION

    instructions = "\n".join(
        [
            "Instructions:",
            f"1. Implement the fix for this {item.kind}",
            "2. Make minimal, focused changes",
            "3. Ensure the code is correct and follows existing patterns",
            "4. Do not make unrelated changes",
            f"5. {final_instruction}",
        ]
    )

    return "\n\n".join(
        [
            intro,
            _heading(item),
            _task_description(item),
            f"Analysis approach: {analysis.approach}",
            instructions,
            "After making changes, provide a brief summary of what you changed.",
        ]
    )
