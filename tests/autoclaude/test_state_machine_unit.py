"""Unit tests for the run state machine."""

import pytest

from autoclaude.assistant import Analysis
from autoclaude.state import (
    VALID_TRANSITIONS,
    BranchContext,
    InvalidTransitionError,
    RunOutcome,
    RunResult,
    RunStage,
    RunStateMachine,
    can_fail_over,
    is_terminal_stage,
    is_valid_transition,
)

HAPPY_PATH = [
    RunStage.ANALYZING,
    RunStage.BRANCH_PREPARING,
    RunStage.FIXING,
    RunStage.CHANGE_CHECK,
    RunStage.COMMITTING,
    RunStage.PUBLISHING,
    RunStage.FINALIZING,
    RunStage.TERMINAL,
]


class TestTransitions:
    def test_starts_at_start(self):
        machine = RunStateMachine("acme/widgets#1")

        assert machine.stage == RunStage.START
        assert machine.stages == [RunStage.START]
        assert not machine.is_terminal

    def test_happy_path(self):
        machine = RunStateMachine("acme/widgets#1")

        for stage in HAPPY_PATH:
            machine.transition(stage)

        assert machine.stage == RunStage.TERMINAL
        assert machine.is_terminal
        assert machine.stages == [RunStage.START] + HAPPY_PATH
        assert len(machine.history) == len(HAPPY_PATH)

    def test_rejection_path(self):
        machine = RunStateMachine("acme/widgets#1")

        machine.transition(RunStage.ANALYZING)
        machine.transition(RunStage.REJECTED)
        machine.transition(RunStage.TERMINAL)

        assert machine.is_terminal

    def test_noop_path(self):
        machine = RunStateMachine("acme/widgets#1")

        for stage in [
            RunStage.ANALYZING,
            RunStage.BRANCH_PREPARING,
            RunStage.FIXING,
            RunStage.CHANGE_CHECK,
            RunStage.NOOP_CLEANUP,
            RunStage.FINALIZING,
            RunStage.TERMINAL,
        ]:
            machine.transition(stage)

        assert machine.is_terminal

    def test_transition_records_details(self):
        machine = RunStateMachine("acme/widgets#1")

        record = machine.transition(RunStage.ANALYZING, details={"attempt": 1})

        assert record.from_stage == RunStage.START
        assert record.to_stage == RunStage.ANALYZING
        assert record.details == {"attempt": 1}
        assert record.timestamp.tzinfo is not None

    def test_skipping_a_stage_is_rejected(self):
        machine = RunStateMachine("acme/widgets#1")

        with pytest.raises(InvalidTransitionError) as exc_info:
            machine.transition(RunStage.FIXING)

        assert exc_info.value.from_stage == RunStage.START
        assert exc_info.value.to_stage == RunStage.FIXING
        assert machine.stage == RunStage.START
        assert machine.history == []

    def test_rejected_cannot_fail_over(self):
        machine = RunStateMachine("acme/widgets#1")
        machine.transition(RunStage.ANALYZING)
        machine.transition(RunStage.REJECTED)

        with pytest.raises(InvalidTransitionError):
            machine.transition(RunStage.FINALIZING)

    def test_terminal_is_final(self):
        machine = RunStateMachine("acme/widgets#1")
        for stage in HAPPY_PATH:
            machine.transition(stage)

        with pytest.raises(InvalidTransitionError):
            machine.transition(RunStage.START)

    def test_empty_item_id_rejected(self):
        with pytest.raises(ValueError):
            RunStateMachine("")


class TestTransitionTable:
    def test_every_stage_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(RunStage)

    def test_only_terminal_is_terminal(self):
        assert [s for s in RunStage if is_terminal_stage(s)] == [RunStage.TERMINAL]

    @pytest.mark.parametrize(
        "stage",
        [
            RunStage.BRANCH_PREPARING,
            RunStage.FIXING,
            RunStage.CHANGE_CHECK,
            RunStage.NOOP_CLEANUP,
            RunStage.COMMITTING,
            RunStage.PUBLISHING,
        ],
    )
    def test_branch_stages_can_fail_over_to_finalizing(self, stage):
        assert can_fail_over(stage)
        assert is_valid_transition(stage, RunStage.FINALIZING)

    @pytest.mark.parametrize("stage", [RunStage.START, RunStage.ANALYZING, RunStage.REJECTED])
    def test_pre_branch_stages_cannot_fail_over(self, stage):
        assert not can_fail_over(stage)
        assert not is_valid_transition(stage, RunStage.FINALIZING)


class TestModels:
    def test_branch_context_defaults(self):
        context = BranchContext(branch_name="autoclaude/issue-1")

        assert context.base_branch == "main"
        assert context.created_by_run is False

    @pytest.mark.parametrize(
        "outcome, succeeded",
        [
            (RunOutcome.FIX_PULL_REQUEST_CREATED, True),
            (RunOutcome.FIX_PUSHED_TO_EXISTING_PR, True),
            (RunOutcome.NO_CHANGES_NEEDED, False),
            (RunOutcome.ANALYSIS_FAILED, False),
            (RunOutcome.FIX_FAILED, False),
            (RunOutcome.REJECTED, False),
        ],
    )
    def test_run_result_succeeded(self, outcome, succeeded):
        result = RunResult(
            item_id="acme/widgets#1",
            outcome=outcome,
            analysis=Analysis(can_resolve=True),
        )

        assert result.succeeded is succeeded
