"""GitHub webhook event models.

This module defines the normalized unit of work handed to the orchestrator
(WorkItem) and the routing decision returned to the HTTP transport.

Only two event types start a run:
- issues.opened - a new issue was created
- issue_comment.created - a comment mentioning the configured user

The models use Pydantic for validation, consistent with config.py.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GitHubEventType(str, Enum):
    """Values of the X-GitHub-Event header that the router understands."""

    ISSUES = "issues"
    ISSUE_COMMENT = "issue_comment"


class WorkItem(BaseModel):
    """Normalized unit of work derived from a webhook event.

    A WorkItem is immutable once constructed; one WorkItem drives exactly
    one orchestrator run.

    Attributes:
        item_number: Issue or pull request number within the repository.
        title: Issue or pull request title.
        body: Issue body text. May be empty.
        url: HTML URL of the issue or pull request.
        repo_owner: The repository owner (user or organization).
        repo_name: The repository name (without owner prefix).
        is_pull_request: True when the run works on an existing PR branch.
        comment_body: The triggering comment, set only for mention runs.
    """

    model_config = ConfigDict(frozen=True)

    item_number: int = Field(
        ...,
        gt=0,
        description="The issue or pull request number (positive integer)",
    )

    title: str = Field(
        ...,
        min_length=1,
        description="The issue or pull request title (cannot be empty)",
    )

    body: str = Field(
        default="",
        description="The issue body text (may be empty)",
    )

    url: str = Field(
        default="",
        description="HTML URL of the issue or pull request",
    )

    repo_owner: str = Field(
        ...,
        min_length=1,
        description="The repository owner (user or organization)",
    )

    repo_name: str = Field(
        ...,
        min_length=1,
        description="The repository name without owner prefix",
    )

    is_pull_request: bool = Field(
        default=False,
        description="Whether the run targets an existing pull request",
    )

    comment_body: Optional[str] = Field(
        default=None,
        description="The comment that mentioned the bot, if any",
    )

    @property
    def item_id(self) -> str:
        """Canonical identifier in format "{owner}/{repo}#{number}"."""
        return f"{self.repo_owner}/{self.repo_name}#{self.item_number}"

    @property
    def full_repository(self) -> str:
        """Repository path in format "{owner}/{repo}"."""
        return f"{self.repo_owner}/{self.repo_name}"

    @property
    def kind(self) -> str:
        """Human-readable item kind used in prompts and comments."""
        return "PR" if self.is_pull_request else "issue"


class RouteDecision(BaseModel):
    """Outcome of routing one webhook delivery.

    Attributes:
        work_item: The work item to dispatch, or None for no-ops.
        message: Human-readable message returned to the transport.
        details: Extra fields echoed in the HTTP response.
    """

    work_item: Optional[WorkItem] = None
    message: str
    details: dict[str, str] = Field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.work_item is not None

    def to_response(self) -> dict[str, str]:
        """Render the decision as the JSON body sent back to GitHub."""
        response = {"message": self.message, **self.details}
        if self.work_item is not None:
            response["item_id"] = self.work_item.item_id
        return response
