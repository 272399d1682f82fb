"""Local git operations for orchestrator runs.

Each operation runs a single git command in the configured repository
using an asyncio subprocess, awaits it to completion, and either returns
its stdout or raises VcsCommandError. There are no internal retries.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 120


class VcsCommandError(Exception):
    """Raised when a git command fails, times out, or cannot be started.

    Attributes:
        command: The git command line that was run.
        exit_code: Process exit code, or None when the process never
            finished (spawn failure or timeout).
        stderr: Captured standard error or a failure description.
    """

    def __init__(self, command: str, exit_code: Optional[int], stderr: str):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Command failed: {command}\n{stderr}".rstrip())


class GitGateway:
    """Runs git commands against one working copy.

    Attributes:
        repo_path: Working copy the commands run in.
        remote: Remote name used by fetch and push.
        base_branch: Integration branch restored by checkout_base.
        timeout_seconds: Per-command timeout.
    """

    def __init__(
        self,
        repo_path: Union[str, Path],
        remote: str = "origin",
        base_branch: str = "main",
        timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS,
    ):
        self.repo_path = Path(repo_path)
        self.remote = remote
        self.base_branch = base_branch
        self.timeout_seconds = timeout_seconds

    async def checkout_new_branch(self, name: str) -> None:
        await self._run("checkout", "-b", name)
        logger.info("Created branch: %s", name)

    async def checkout_existing(self, name: str) -> None:
        await self._run("checkout", name)
        logger.info("Checked out branch: %s", name)

    async def fetch(self, remote: Optional[str] = None, ref: Optional[str] = None) -> None:
        args = ["fetch", remote or self.remote]
        if ref:
            args.append(ref)
        await self._run(*args)

    async def status(self) -> str:
        """Return `git status --porcelain` output; empty means a clean tree."""
        return await self._run("status", "--porcelain")

    async def commit_all(self, message: str) -> None:
        """Stage everything in the working tree and commit it."""
        await self._run("add", "-A")
        await self._run("commit", "-m", message)
        logger.info("Committed changes", extra={"commit_message": message})

    async def push(self, branch: str, set_upstream: bool = False) -> None:
        args = ["push"]
        if set_upstream:
            args.append("-u")
        args.extend([self.remote, branch])
        await self._run(*args)
        logger.info("Pushed branch %s to %s", branch, self.remote)

    async def delete_branch(self, name: str) -> None:
        await self._run("branch", "-D", name)
        logger.info("Deleted branch: %s", name)

    async def checkout_base(self) -> None:
        await self._run("checkout", self.base_branch)

    async def log_range(self, from_ref: str, to_ref: str = "HEAD") -> str:
        """Return one-line log entries reachable from to_ref but not from_ref."""
        return await self._run("log", f"{from_ref}..{to_ref}", "--oneline")

    async def rev_parse(self, ref: str = "HEAD") -> str:
        return (await self._run("rev-parse", ref)).strip()

    async def _run(self, *args: str) -> str:
        """Run one git command in the working copy.

        Args:
            *args: Arguments following the git executable.

        Returns:
            Decoded standard output.

        Raises:
            VcsCommandError: On non-zero exit, timeout, or spawn failure.
        """
        command = " ".join(["git", *args])
        logger.debug("Running %s", command, extra={"cwd": str(self.repo_path)})

        try:
            process = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=str(self.repo_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise VcsCommandError(
                command, None, f"Failed to execute git: {exc}"
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            raise VcsCommandError(
                command,
                None,
                f"Command timed out after {self.timeout_seconds}s",
            ) from exc

        if process.returncode != 0:
            error_output = stderr.decode(errors="replace").strip()
            logger.warning(
                "git command failed",
                extra={
                    "command": command,
                    "exit_code": process.returncode,
                    "stderr": error_output,
                },
            )
            raise VcsCommandError(command, process.returncode, error_output)

        return stdout.decode(errors="replace")
