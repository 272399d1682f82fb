"""Property-based tests for the run state machine.

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test
"""

import pytest
from hypothesis import given, settings, strategies as st

from autoclaude.state import (
    VALID_TRANSITIONS,
    InvalidTransitionError,
    RunStage,
    RunStateMachine,
    is_valid_transition,
)


@st.composite
def valid_walk(draw: st.DrawFn) -> list:
    """Generate a random legal walk from START to TERMINAL."""
    stage = RunStage.START
    walk = []
    while VALID_TRANSITIONS[stage]:
        stage = draw(st.sampled_from(VALID_TRANSITIONS[stage]))
        walk.append(stage)
    return walk


@settings(max_examples=100)
@given(walk=valid_walk())
def test_every_legal_walk_reaches_terminal(walk: list) -> None:
    """Following only allowed transitions always ends in TERMINAL."""
    machine = RunStateMachine("acme/widgets#1")

    for stage in walk:
        machine.transition(stage)

    assert machine.stage == RunStage.TERMINAL
    assert machine.stages == [RunStage.START] + walk


@settings(max_examples=100)
@given(walk=valid_walk())
def test_every_run_passes_through_analyzing(walk: list) -> None:
    """No run reaches a branch stage without being analyzed first."""
    assert walk[0] == RunStage.ANALYZING


@settings(max_examples=100)
@given(
    walk=valid_walk(),
    cut=st.integers(min_value=0),
    target=st.sampled_from(list(RunStage)),
)
def test_illegal_transition_leaves_state_unchanged(walk: list, cut: int, target: RunStage) -> None:
    """A rejected transition never changes the current stage or history."""
    machine = RunStateMachine("acme/widgets#1")
    for stage in walk[: cut % (len(walk) + 1)]:
        machine.transition(stage)

    current = machine.stage
    history_length = len(machine.history)

    if is_valid_transition(current, target):
        machine.transition(target)
        assert machine.stage == target
    else:
        with pytest.raises(InvalidTransitionError):
            machine.transition(target)
        assert machine.stage == current
        assert len(machine.history) == history_length
