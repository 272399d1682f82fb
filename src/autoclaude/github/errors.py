"""Hosting error hierarchy shared by the REST and CLI bindings."""

from typing import Any, Optional


class HostingError(Exception):
    """Base class for failures talking to the source-control host."""


class GitHubAPIError(HostingError):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class HostingUnauthorizedError(GitHubAPIError):
    """Raised when credentials are missing or rejected (401/403)."""


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    The client does not wait or retry; the fields are informational.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds until a retry would be accepted.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


class GhCliError(HostingError):
    """Raised when a gh CLI command fails or cannot be started.

    Attributes:
        command: The gh command line that was run.
        exit_code: Process exit code, None if the process never ran.
        stderr: Captured standard error.
    """

    def __init__(self, command: str, exit_code: Optional[int], stderr: str):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"{command} exited with code {exit_code}: {stderr}".rstrip())
