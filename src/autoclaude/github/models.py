"""Hosting service models and the HostingGateway protocol.

Both hosting bindings (the REST client and the gh CLI client) satisfy
HostingGateway so the orchestrator can be wired against either one.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class PullRequestRef(BaseModel):
    """Reference to a pull request created by a run.

    Attributes:
        number: Pull request number.
        url: Browser URL of the pull request.
    """

    number: int = Field(..., gt=0, description="Pull request number")

    url: str = Field(default="", description="Browser URL of the pull request")

    @classmethod
    def from_github_response(cls, data: Dict[str, Any]) -> "PullRequestRef":
        """Build from a GitHub REST pull request object."""
        return cls(number=data["number"], url=data.get("html_url", ""))


class PullRequestInfo(BaseModel):
    """Branch refs of an existing pull request.

    Attributes:
        head_branch: Branch the pull request merges from.
        base_branch: Branch the pull request merges into.
    """

    head_branch: str = Field(..., min_length=1, description="PR head ref")

    base_branch: str = Field(..., min_length=1, description="PR base ref")


@runtime_checkable
class HostingGateway(Protocol):
    """Operations the orchestrator needs from the source-control host."""

    async def post_comment(
        self,
        owner: str,
        repo: str,
        item_number: int,
        body: str,
        is_pull_request: bool = False,
    ) -> None: ...

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> Optional[PullRequestRef]: ...

    async def get_pull_request_info(
        self,
        owner: str,
        repo: str,
        number: int,
    ) -> PullRequestInfo: ...

    async def close(self) -> None: ...
