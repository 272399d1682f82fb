"""Run state machine models.

This module defines the data models for one orchestrator run, including:
- RunStage: Enum of all run stages
- RunOutcome: Terminal result of a run
- StageTransition: Record of a stage transition with timestamp and details
- BranchContext: The branch a run works on
- RunResult: Summary returned when a run finishes
- VALID_TRANSITIONS: Map defining allowed stage transitions
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from autoclaude.assistant.analysis import Analysis
from autoclaude.github.models import PullRequestRef


class RunStage(str, Enum):
    """Stages a run moves through.

    Stage Flow:
        start → analyzing → branch_preparing → fixing → change_check
        → committing → publishing → finalizing → terminal

    analyzing may end the run early through rejected. change_check goes
    to noop_cleanup when the fix changed nothing. Every stage from
    branch_preparing through publishing may jump straight to finalizing
    on failure.
    """

    START = "start"
    ANALYZING = "analyzing"
    REJECTED = "rejected"
    BRANCH_PREPARING = "branch_preparing"
    FIXING = "fixing"
    CHANGE_CHECK = "change_check"
    NOOP_CLEANUP = "noop_cleanup"
    COMMITTING = "committing"
    PUBLISHING = "publishing"
    FINALIZING = "finalizing"
    TERMINAL = "terminal"


class RunOutcome(str, Enum):
    """Terminal result of a run; each drives at most one outward comment.

    Attributes:
        FIX_PULL_REQUEST_CREATED: Issue run pushed a branch and asked for a
            PR. No comment is posted when the PR could not be created.
        FIX_PUSHED_TO_EXISTING_PR: PR-comment run pushed to the PR branch.
        NO_CHANGES_NEEDED: The fix attempt left the tree unchanged.
        ANALYSIS_FAILED: The analysis call failed or was unparseable.
        FIX_FAILED: A step after a positive analysis failed.
        REJECTED: The assistant judged the item not automatically resolvable.
    """

    FIX_PULL_REQUEST_CREATED = "fix_pull_request_created"
    FIX_PUSHED_TO_EXISTING_PR = "fix_pushed_to_existing_pr"
    NO_CHANGES_NEEDED = "no_changes_needed"
    ANALYSIS_FAILED = "analysis_failed"
    FIX_FAILED = "fix_failed"
    REJECTED = "rejected"


class StageTransition(BaseModel):
    """Record of a stage transition within a run.

    Attributes:
        from_stage: The stage before the transition.
        to_stage: The stage after the transition.
        timestamp: When the transition occurred (UTC).
        details: Optional metadata about the transition.
    """

    from_stage: RunStage = Field(
        ...,
        description="The run stage before this transition",
    )

    to_stage: RunStage = Field(
        ...,
        description="The run stage after this transition",
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the transition occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Optional metadata about the transition",
    )


@dataclass
class BranchContext:
    """The branch a run works on.

    Attributes:
        branch_name: Branch the fix is made on.
        base_branch: Branch the fix targets.
        created_by_run: True only once this run has created branch_name;
            gates deletion during cleanup.
    """

    branch_name: str
    base_branch: str = "main"
    created_by_run: bool = False


class RunResult(BaseModel):
    """Summary of a finished run.

    Attributes:
        item_id: Canonical item identifier "{owner}/{repo}#{number}".
        outcome: The terminal outcome.
        branch_name: Branch the run worked on, if it got that far.
        pull_request: Pull request opened by the run, if any.
        analysis: Verdict from the analysis call, if it parsed.
        error: Error message for failed runs.
        stages: Stages visited, in order.
        duration_seconds: Wall-clock duration of the run.
    """

    item_id: str = Field(..., min_length=1)

    outcome: RunOutcome

    branch_name: Optional[str] = None

    pull_request: Optional[PullRequestRef] = None

    analysis: Optional[Analysis] = None

    error: Optional[str] = None

    stages: List[RunStage] = Field(default_factory=list)

    duration_seconds: float = Field(default=0.0, ge=0)

    @property
    def succeeded(self) -> bool:
        return self.outcome in SUCCESSFUL_OUTCOMES


SUCCESSFUL_OUTCOMES = frozenset(
    {
        RunOutcome.FIX_PULL_REQUEST_CREATED,
        RunOutcome.FIX_PUSHED_TO_EXISTING_PR,
    }
)


# Stages that may fail over to FINALIZING, where the failure path runs.
_RECOVERABLE_STAGES = (
    RunStage.BRANCH_PREPARING,
    RunStage.FIXING,
    RunStage.CHANGE_CHECK,
    RunStage.NOOP_CLEANUP,
    RunStage.COMMITTING,
    RunStage.PUBLISHING,
)

VALID_TRANSITIONS: Dict[RunStage, List[RunStage]] = {
    RunStage.START: [RunStage.ANALYZING],
    # Analysis either rejects the item (including unparseable output) or
    # goes on to prepare a branch
    RunStage.ANALYZING: [RunStage.REJECTED, RunStage.BRANCH_PREPARING],
    RunStage.REJECTED: [RunStage.TERMINAL],
    RunStage.BRANCH_PREPARING: [RunStage.FIXING, RunStage.FINALIZING],
    RunStage.FIXING: [RunStage.CHANGE_CHECK, RunStage.FINALIZING],
    RunStage.CHANGE_CHECK: [
        RunStage.NOOP_CLEANUP,
        RunStage.COMMITTING,
        RunStage.FINALIZING,
    ],
    RunStage.NOOP_CLEANUP: [RunStage.FINALIZING],
    RunStage.COMMITTING: [RunStage.PUBLISHING, RunStage.FINALIZING],
    RunStage.PUBLISHING: [RunStage.FINALIZING],
    RunStage.FINALIZING: [RunStage.TERMINAL],
    RunStage.TERMINAL: [],
}


def is_valid_transition(from_stage: RunStage, to_stage: RunStage) -> bool:
    """Check if a stage transition is allowed.

    Example:
        >>> is_valid_transition(RunStage.START, RunStage.ANALYZING)
        True
        >>> is_valid_transition(RunStage.REJECTED, RunStage.FINALIZING)
        False
    """
    return to_stage in VALID_TRANSITIONS.get(from_stage, [])


def is_terminal_stage(stage: RunStage) -> bool:
    return len(VALID_TRANSITIONS.get(stage, [])) == 0


def can_fail_over(stage: RunStage) -> bool:
    """True if a failure in this stage is handled by the failure path."""
    return stage in _RECOVERABLE_STAGES
