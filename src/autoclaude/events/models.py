"""Run event models for observability.

This module defines the data models for run events, including:
- EventType: Enum of all event types emitted by the orchestrator
- RunEvent: Structured event with all required metadata

Events are emitted for monitoring, alerting, and debugging purposes.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events emitted during a run.

    Attributes:
        STATE_TRANSITION: The run moved from one stage to another.
        ERROR: A step failed.
        COMPLETION: The run reached a terminal outcome.
        TIMEOUT: The assistant exceeded its time limit.
    """

    STATE_TRANSITION = "state_transition"
    ERROR = "error"
    COMPLETION = "completion"
    TIMEOUT = "timeout"


class RunEvent(BaseModel):
    """Structured event emitted by the orchestrator.

    Attributes:
        event_type: The category of event (state transition, error, etc.).
        item_id: Canonical identifier in format "{owner}/{repo}#{number}".
        repository: Full repository path in format "{owner}/{repo}".
        timestamp: When the event occurred (UTC timezone).
        details: Additional context specific to the event type.

    Details Field Conventions:
        For STATE_TRANSITION events:
            - from_stage: Previous run stage
            - to_stage: New run stage

        For ERROR events:
            - error_message: Human-readable error description
            - error_type: Exception class name
            - stage: Run stage where the error occurred

        For COMPLETION events:
            - outcome: RunOutcome value
            - duration_seconds: Total processing time
            - pr_number: Pull request number, when one was created

        For TIMEOUT events:
            - operation: Name of the operation that timed out
            - timeout_seconds: Configured timeout value
            - stage: Run stage where the timeout occurred
    """

    event_type: EventType = Field(
        ...,
        description="The category of event being emitted",
    )

    item_id: str = Field(
        ...,
        min_length=1,
        description='Canonical item identifier in format "{owner}/{repo}#{number}"',
    )

    repository: str = Field(
        ...,
        min_length=1,
        description='Full repository path in format "{owner}/{repo}"',
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context specific to the event type",
    )

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert event to a flat dictionary for structured logging.

        Example:
            >>> event = RunEvent(
            ...     event_type=EventType.ERROR,
            ...     item_id="org/repo#123",
            ...     repository="org/repo",
            ...     details={"error_message": "git push failed"}
            ... )
            >>> event.to_log_dict()["event_type"]
            'error'
        """
        return {
            "event_type": self.event_type.value,
            "item_id": self.item_id,
            "repository": self.repository,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }
