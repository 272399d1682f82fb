"""Run state machine.

Tracks one orchestrator run through its stages:
- start → analyzing → branch_preparing → fixing → change_check
- → committing → publishing → finalizing → terminal

State lives in memory for the duration of the run.
"""

from autoclaude.state.machine import InvalidTransitionError, RunStateMachine
from autoclaude.state.models import (
    VALID_TRANSITIONS,
    BranchContext,
    RunOutcome,
    RunResult,
    RunStage,
    StageTransition,
    can_fail_over,
    is_terminal_stage,
    is_valid_transition,
)

__all__ = [
    # Models
    "BranchContext",
    "RunOutcome",
    "RunResult",
    "RunStage",
    "StageTransition",
    "VALID_TRANSITIONS",
    "can_fail_over",
    "is_terminal_stage",
    "is_valid_transition",
    # State machine
    "InvalidTransitionError",
    "RunStateMachine",
]
