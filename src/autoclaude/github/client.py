"""GitHub REST API binding of the HostingGateway.

This module provides an async wrapper around the GitHub API for:
- Posting comments on issues and pull requests
- Creating pull requests
- Reading the head/base branches of an existing pull request

Failed requests raise immediately; there is no retry or backoff. Rate
limit responses raise RateLimitError with the reset information parsed
from the X-RateLimit-* headers.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from autoclaude.github.errors import (
    GitHubAPIError,
    HostingError,
    HostingUnauthorizedError,
    RateLimitError,
)
from autoclaude.github.models import PullRequestInfo, PullRequestRef

logger = logging.getLogger(__name__)


class GitHubClient:
    """Async GitHub API client.

    Supports both github.com and GitHub Enterprise Server through
    base_url.

    Attributes:
        token: GitHub API token (PAT or GitHub App token). Requests fail
            with HostingUnauthorizedError when it is missing.
        base_url: Base URL for GitHub API (default: https://api.github.com).
        timeout: Request timeout in seconds.

    Example:
        >>> client = GitHubClient(token="ghp_xxx")
        >>> async with client:
        ...     await client.post_comment("owner", "repo", 123, "Hello!")
    """

    def __init__(
        self,
        token: Optional[str],
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used to stub the API.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "AutoClaude/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _parse_int_header(
        self,
        headers: httpx.Headers,
        name: str,
    ) -> Optional[int]:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return None

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitError:
        """Build a RateLimitError from a rate-limited response."""
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            extra={
                "reset_at": reset_at,
                "retry_after": retry_after,
                "limit": self._parse_int_header(response.headers, "x-ratelimit-limit"),
            },
        )

        return RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make a single HTTP request and classify failures.

        Args:
            method: HTTP method.
            path: API path (e.g., /repos/owner/repo/issues/1/comments).
            json_data: Optional JSON body for the request.

        Returns:
            The successful HTTP response.

        Raises:
            HostingUnauthorizedError: Missing token, or a 401/403 response.
            RateLimitError: If the rate limit is exceeded.
            GitHubAPIError: Any other failure.
        """
        if not self.token:
            raise HostingUnauthorizedError(
                message="GitHub token not configured",
                request_url=f"{self.base_url}{path}",
            )

        try:
            response = await self.client.request(
                method=method,
                url=path,
                json=json_data,
            )
        except httpx.RequestError as e:
            logger.error(
                "GitHub API request failed",
                extra={"path": path, "method": method, "error": str(e)},
            )
            raise GitHubAPIError(
                message=f"Request failed: {e}",
                request_url=f"{self.base_url}{path}",
            ) from e

        if response.status_code == 429:
            raise self._rate_limit_error(response)

        if response.status_code == 403:
            remaining = self._parse_int_header(
                response.headers, "x-ratelimit-remaining"
            )
            if remaining == 0:
                raise self._rate_limit_error(response)

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub API error",
                extra={
                    "status_code": response.status_code,
                    "path": path,
                    "method": method,
                    "response_body": error_body[:500],
                },
            )
            error_class = (
                HostingUnauthorizedError
                if response.status_code in (401, 403)
                else GitHubAPIError
            )
            raise error_class(
                message=f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        return response

    async def post_comment(
        self,
        owner: str,
        repo: str,
        item_number: int,
        body: str,
        is_pull_request: bool = False,
    ) -> None:
        """Create a comment on an issue or pull request.

        Pull request conversations use the issues endpoint, so
        is_pull_request does not change the request.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/issues/{item_number}/comments"

        logger.info(
            "Creating comment",
            extra={
                "owner": owner,
                "repo": repo,
                "item_number": item_number,
                "is_pull_request": is_pull_request,
                "body_length": len(body),
            },
        )

        response = await self._request(
            method="POST",
            path=path,
            json_data={"body": body},
        )

        logger.info(
            "Comment created successfully",
            extra={
                "owner": owner,
                "repo": repo,
                "item_number": item_number,
                "status_code": response.status_code,
            },
        )

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> Optional[PullRequestRef]:
        """Create a pull request.

        Returns:
            PullRequestRef for the new PR, or None if creation failed. Hosting
            failures are logged, never raised.
        """
        path = f"/repos/{owner}/{repo}/pulls"

        logger.info(
            "Creating pull request",
            extra={
                "owner": owner,
                "repo": repo,
                "title": title,
                "head": head,
                "base": base,
            },
        )

        try:
            response = await self._request(
                method="POST",
                path=path,
                json_data={
                    "title": title,
                    "body": body,
                    "head": head,
                    "base": base,
                },
            )
            result = PullRequestRef.from_github_response(response.json())
        except (HostingError, KeyError, ValueError) as e:
            logger.error(
                "Failed to create pull request",
                extra={"owner": owner, "repo": repo, "head": head, "error": str(e)},
            )
            return None

        logger.info(
            "Pull request created successfully",
            extra={
                "owner": owner,
                "repo": repo,
                "pr_number": result.number,
                "pr_url": result.url,
            },
        )
        return result

    async def get_pull_request_info(
        self,
        owner: str,
        repo: str,
        number: int,
    ) -> PullRequestInfo:
        """Get the head and base branches of a pull request.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/pulls/{number}"

        logger.debug(
            "Getting pull request details",
            extra={"owner": owner, "repo": repo, "pr_number": number},
        )

        response = await self._request(method="GET", path=path)
        data = response.json()
        return PullRequestInfo(
            head_branch=data["head"]["ref"],
            base_branch=data["base"]["ref"],
        )
