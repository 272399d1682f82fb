"""Comment, pull request and commit text for orchestrator runs.

Every outward-facing message a run produces is built here as
GitHub-flavored markdown. Each terminal run outcome maps to exactly one
comment builder.
"""

from autoclaude.assistant.analysis import Analysis
from autoclaude.github.models import PullRequestRef
from autoclaude.webhook.models import WorkItem

BOT_MARKER = "🤖"

PR_FOOTER = "---\n🤖 This PR was automatically generated by AutoClaude."


def _analysis_metadata(analysis: Analysis) -> str:
    return "\n".join(
        [
            f"- **Confidence:** {analysis.confidence.value}",
            f"- **Complexity:** {analysis.estimated_complexity.value}",
            f"- **Approach:** {analysis.approach}",
        ]
    )


def format_analysis_failed_comment(item: WorkItem, error: str) -> str:
    """Comment for a run whose analysis call failed or was unparseable."""
    return f"""{BOT_MARKER} **AutoClaude Analysis Failed**

I encountered an error while trying to analyze this {item.kind}. A human will need to review it.

Error: {error}"""


def format_rejection_comment(item: WorkItem, analysis: Analysis) -> str:
    """Comment for a run the assistant judged not automatically resolvable."""
    return f"""{BOT_MARKER} **AutoClaude Analysis**

I've analyzed this {item.kind} and determined that it **cannot be resolved automatically**.

**Reason:** {analysis.reason}

**Confidence:** {analysis.confidence.value}

This {item.kind} requires human attention."""


def format_no_changes_comment(item: WorkItem, analysis: Analysis) -> str:
    """Comment for a run where the fix attempt changed nothing."""
    return f"""{BOT_MARKER} **AutoClaude Analysis**

I analyzed this {item.kind} and attempted to create a fix, but no code changes were necessary or I couldn't determine the exact changes needed.

**My Analysis:**
{analysis.reason}

**Approach Considered:**
{analysis.approach}

A human may need to review this {item.kind}."""


def format_changes_pushed_comment(summary: str, analysis: Analysis) -> str:
    """Comment on a pull request after new commits were pushed to it.

    Args:
        summary: The assistant's description of its changes.
        analysis: The verdict the fix was based on.
    """
    return f"""{BOT_MARKER} **AutoClaude Changes Pushed**

I've addressed the requested changes and pushed a new commit to this PR.

**Changes Made:**
{summary}

**Analysis:**
{_analysis_metadata(analysis)}

Please review the new changes."""


def format_pull_request_title(item: WorkItem) -> str:
    return f"fix: {item.title} (Issue #{item.item_number})"


def format_pull_request_body(item: WorkItem, summary: str, analysis: Analysis) -> str:
    """Build the body of the pull request opened for an issue.

    The body contains "Fixes #<n>" so that merging the PR closes the issue.
    """
    return f"""## Summary
Automated fix for #{item.item_number}

Fixes #{item.item_number}

## Changes
{summary}

## Analysis
{_analysis_metadata(analysis)}

{PR_FOOTER}"""


def format_fix_created_comment(pull_request: PullRequestRef) -> str:
    """Comment on an issue linking the pull request that fixes it."""
    return f"""{BOT_MARKER} **AutoClaude Fix Created**

I've analyzed this issue and created a fix!

**Pull Request:** #{pull_request.number}
**Link:** {pull_request.url}

Please review the changes and merge if they look good. The issue will be automatically closed when the PR is merged."""


def format_fix_failed_comment(item: WorkItem, analysis: Analysis, error: str) -> str:
    """Comment for a run that failed after the analysis accepted the item."""
    return f"""{BOT_MARKER} **AutoClaude Fix Failed**

I analyzed this {item.kind} and attempted to create a fix, but encountered an error.

**My Analysis:**
- **Can Resolve:** Yes ({analysis.confidence.value} confidence)
- **Approach:** {analysis.approach}

**Error:** {error}

A human will need to review this {item.kind}."""


def format_commit_message(item: WorkItem) -> str:
    if item.is_pull_request:
        return f"fix: address review comments on PR #{item.item_number}"
    return f"fix: resolve issue #{item.item_number} - {item.title}"
