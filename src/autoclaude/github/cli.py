"""gh CLI binding of the HostingGateway.

Uses the locally authenticated GitHub CLI instead of an API token.
Comment and pull request bodies are passed on stdin (`--body-file -`)
so that arbitrary markdown never goes through argument quoting.
"""

import asyncio
import json
import logging
import re
from typing import Optional, Sequence, Tuple

from autoclaude.github.errors import GhCliError, HostingError
from autoclaude.github.models import PullRequestInfo, PullRequestRef

logger = logging.getLogger(__name__)

DEFAULT_GH_TIMEOUT_SECONDS = 60

PULL_NUMBER_PATTERN = re.compile(r"/pull/(\d+)")


class GhCliClient:
    """Runs gh commands to post comments and manage pull requests.

    Attributes:
        gh_path: Executable name or path of the gh CLI.
        timeout_seconds: Per-command timeout.
    """

    def __init__(
        self,
        gh_path: str = "gh",
        timeout_seconds: float = DEFAULT_GH_TIMEOUT_SECONDS,
    ):
        self.gh_path = gh_path
        self.timeout_seconds = timeout_seconds

    async def close(self) -> None:
        """Nothing to release; present for HostingGateway compatibility."""

    async def post_comment(
        self,
        owner: str,
        repo: str,
        item_number: int,
        body: str,
        is_pull_request: bool = False,
    ) -> None:
        """Post a comment with `gh issue comment` or `gh pr comment`.

        Raises:
            GhCliError: If gh fails.
        """
        command = "pr" if is_pull_request else "issue"
        await self._run(
            [
                command,
                "comment",
                str(item_number),
                "--repo",
                f"{owner}/{repo}",
                "--body-file",
                "-",
            ],
            stdin=body,
        )
        logger.info("Posted comment on %s #%s", command, item_number)

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> Optional[PullRequestRef]:
        """Create a pull request with `gh pr create`.

        gh prints the URL of the new pull request; the number is parsed
        from it.

        Returns:
            PullRequestRef, or None if gh failed or printed no PR URL.
        """
        try:
            stdout = await self._run(
                [
                    "pr",
                    "create",
                    "--repo",
                    f"{owner}/{repo}",
                    "--title",
                    title,
                    "--head",
                    head,
                    "--base",
                    base,
                    "--body-file",
                    "-",
                ],
                stdin=body,
            )
        except HostingError as e:
            logger.error(
                "Failed to create pull request",
                extra={"owner": owner, "repo": repo, "head": head, "error": str(e)},
            )
            return None

        pr_url = stdout.strip().splitlines()[-1] if stdout.strip() else ""
        match = PULL_NUMBER_PATTERN.search(pr_url)
        if match is None:
            logger.error(
                "Could not find pull request number in gh output",
                extra={"output": stdout[:500]},
            )
            return None

        logger.info("Created PR: %s", pr_url)
        return PullRequestRef(number=int(match.group(1)), url=pr_url)

    async def get_pull_request_info(
        self,
        owner: str,
        repo: str,
        number: int,
    ) -> PullRequestInfo:
        """Read head and base refs with `gh pr view --json`.

        Raises:
            GhCliError: If gh fails or prints unexpected JSON.
        """
        args = [
            "pr",
            "view",
            str(number),
            "--repo",
            f"{owner}/{repo}",
            "--json",
            "headRefName,baseRefName",
        ]
        stdout = await self._run(args)

        try:
            data = json.loads(stdout)
            return PullRequestInfo(
                head_branch=data["headRefName"],
                base_branch=data["baseRefName"],
            )
        except (ValueError, KeyError, TypeError) as e:
            raise GhCliError(
                self._format_command(args), 0, f"Unexpected gh output: {e}"
            ) from e

    def _format_command(self, args: Sequence[str]) -> str:
        return " ".join([self.gh_path, *args])

    async def _run(self, args: Sequence[str], stdin: Optional[str] = None) -> str:
        """Run one gh command and return its stdout.

        Raises:
            GhCliError: On non-zero exit, timeout, or spawn failure.
        """
        command = self._format_command(args)

        try:
            process = await asyncio.create_subprocess_exec(
                self.gh_path,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GhCliError(command, None, f"Failed to execute gh: {e}") from e

        input_bytes = stdin.encode("utf-8") if stdin is not None else b""
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input=input_bytes),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            raise GhCliError(
                command, None, f"Timed out after {self.timeout_seconds}s"
            ) from e

        stdout_text, stderr_text = _decode(stdout, stderr)
        if process.returncode != 0:
            logger.error(
                "gh command failed",
                extra={
                    "command": command,
                    "exit_code": process.returncode,
                    "stderr": stderr_text[:500],
                },
            )
            raise GhCliError(command, process.returncode, stderr_text)

        return stdout_text


def _decode(stdout: bytes, stderr: bytes) -> Tuple[str, str]:
    return (
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace").strip(),
    )
