"""Source-control hosting integration.

Two interchangeable bindings of the HostingGateway protocol:
- GitHubClient: GitHub REST API over httpx, authenticated with a token
- GhCliClient: the locally authenticated gh CLI

create_hosting_gateway picks one from the configured hosting_backend.
"""

from autoclaude.config import AutoClaudeSettings
from autoclaude.github.cli import GhCliClient
from autoclaude.github.client import GitHubClient
from autoclaude.github.errors import (
    GhCliError,
    GitHubAPIError,
    HostingError,
    HostingUnauthorizedError,
    RateLimitError,
)
from autoclaude.github.models import HostingGateway, PullRequestInfo, PullRequestRef


def create_hosting_gateway(settings: AutoClaudeSettings) -> HostingGateway:
    """Create the hosting binding selected by settings.hosting_backend."""
    if settings.hosting_backend == "rest":
        return GitHubClient(
            token=settings.github_token,
            base_url=settings.github_base_url,
        )
    return GhCliClient(gh_path=settings.gh_cli_path)


__all__ = [
    "GhCliClient",
    "GhCliError",
    "GitHubAPIError",
    "GitHubClient",
    "HostingError",
    "HostingGateway",
    "HostingUnauthorizedError",
    "PullRequestInfo",
    "PullRequestRef",
    "RateLimitError",
    "create_hosting_gateway",
]
