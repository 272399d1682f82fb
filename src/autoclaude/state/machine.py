"""Run state machine implementation.

Tracks one orchestrator run through its stages in memory. Every transition
is validated against VALID_TRANSITIONS and recorded with a timestamp; an
illegal transition raises InvalidTransitionError. Nothing is persisted.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from autoclaude.state.models import (
    RunStage,
    StageTransition,
    is_terminal_stage,
    is_valid_transition,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when an invalid stage transition is attempted.

    Attributes:
        from_stage: The current stage.
        to_stage: The attempted target stage.
        message: Human-readable error message.
    """

    def __init__(
        self,
        from_stage: RunStage,
        to_stage: RunStage,
        message: Optional[str] = None,
    ):
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.message = message or (
            f"Invalid transition from {from_stage.value} to {to_stage.value}"
        )
        super().__init__(self.message)


class RunStateMachine:
    """In-memory stage tracker for a single run.

    Attributes:
        item_id: Identifier of the work item the run processes.
        stage: The current stage.
        history: Ordered list of all transitions so far.

    Example:
        >>> machine = RunStateMachine("owner/repo#42")
        >>> machine.transition(RunStage.ANALYZING)
        >>> machine.stage
        <RunStage.ANALYZING: 'analyzing'>
    """

    def __init__(self, item_id: str):
        if not item_id:
            raise ValueError("item_id cannot be empty")
        self.item_id = item_id
        self.stage = RunStage.START
        self.history: List[StageTransition] = []

    @property
    def stages(self) -> List[RunStage]:
        """All stages visited so far, starting with START."""
        return [RunStage.START] + [t.to_stage for t in self.history]

    @property
    def is_terminal(self) -> bool:
        return is_terminal_stage(self.stage)

    def transition(
        self,
        to_stage: RunStage,
        details: Optional[Dict[str, Any]] = None,
    ) -> StageTransition:
        """Move the run to a new stage.

        Args:
            to_stage: The target stage.
            details: Optional metadata recorded with the transition.

        Returns:
            The recorded transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
        """
        from_stage = self.stage

        if not is_valid_transition(from_stage, to_stage):
            logger.warning(
                "Invalid stage transition attempted",
                extra={
                    "item_id": self.item_id,
                    "from_stage": from_stage.value,
                    "to_stage": to_stage.value,
                },
            )
            raise InvalidTransitionError(from_stage, to_stage)

        record = StageTransition(
            from_stage=from_stage,
            to_stage=to_stage,
            timestamp=datetime.now(timezone.utc),
            details=details or {},
        )
        self.history.append(record)
        self.stage = to_stage

        logger.debug(
            "Run stage transition",
            extra={
                "item_id": self.item_id,
                "from_stage": from_stage.value,
                "to_stage": to_stage.value,
            },
        )
        return record
