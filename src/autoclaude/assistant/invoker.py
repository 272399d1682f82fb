"""Assistant CLI subprocess management.

Executes the coding assistant as an async subprocess with timeout
enforcement and output streaming. The prompt is written to the
subprocess's stdin rather than passed as an argument; long prompts passed
as arguments hang the CLI or hit argument length limits.

Behavior:
- Launch the assistant bound to a working directory
- Write the prompt to stdin, then close stdin
- Capture stdout and stderr incrementally, mirroring stdout to the console
- Kill the process and fail when the wall-clock timeout expires
- Exit code 0 returns the trimmed stdout; anything else raises
"""

import asyncio
import codecs
import logging
import sys
import time
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300
READ_CHUNK_SIZE = 4096


class AssistantError(Exception):
    """Base class for assistant invocation failures."""


class AssistantSpawnError(AssistantError):
    """Raised when the assistant process cannot be started at all."""

    def __init__(self, command: str, cause: OSError):
        self.command = command
        self.cause = cause
        super().__init__(f"Failed to start {command}: {cause}")


class AssistantTimeoutError(AssistantError):
    """Raised when the assistant exceeds its wall-clock timeout.

    Attributes:
        timeout_seconds: The timeout that was exceeded.
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Assistant CLI timed out after {timeout_seconds}s")


class AssistantNonZeroExitError(AssistantError):
    """Raised when the assistant exits with a non-zero status.

    Attributes:
        exit_code: Process exit code.
        stderr: Captured standard error.
    """

    def __init__(self, exit_code: int, stderr: str):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Assistant exited with code {exit_code}: {stderr}")


def _echo_to_console(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


class AssistantInvoker:
    """Runs the assistant CLI against a working directory.

    Attributes:
        command: Executable name or path of the assistant CLI.
        args: Extra arguments (output mode, permission flags).
        timeout_seconds: Maximum execution time before the process is killed.
        echo: Callback receiving stdout chunks as they arrive.
    """

    def __init__(
        self,
        command: str = "claude",
        args: Sequence[str] = ("--output-format", "text"),
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        echo: Optional[Callable[[str], None]] = _echo_to_console,
    ):
        self.command = command
        self.args = list(args)
        self.timeout_seconds = timeout_seconds
        self.echo = echo

    async def invoke(self, prompt: str, working_dir: Union[str, Path]) -> str:
        """Run the assistant with a prompt and return its output.

        Args:
            prompt: The full prompt text, delivered over stdin.
            working_dir: Directory the assistant runs in.

        Returns:
            The trimmed standard output.

        Raises:
            AssistantSpawnError: If the process cannot be launched.
            AssistantTimeoutError: If the timeout expires.
            AssistantNonZeroExitError: If the process exits non-zero.
        """
        logger.info("Running assistant CLI...")
        start_time = time.monotonic()

        process = await self._start_process(working_dir)

        stdout_chunks: list[str] = []
        stderr_chunks: list[str] = []

        try:
            await asyncio.wait_for(
                self._communicate(process, prompt, stdout_chunks, stderr_chunks),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.error(
                "Assistant CLI timed out after %ss",
                self.timeout_seconds,
            )
            raise AssistantTimeoutError(self.timeout_seconds) from None

        duration = time.monotonic() - start_time
        exit_code = process.returncode
        stdout = "".join(stdout_chunks)
        stderr = "".join(stderr_chunks)

        if exit_code != 0:
            logger.error(
                "Assistant CLI failed with exit code %s in %.1fs",
                exit_code,
                duration,
            )
            raise AssistantNonZeroExitError(
                exit_code if exit_code is not None else -1, stderr
            )

        logger.info("Assistant CLI completed successfully in %.1fs", duration)
        return stdout.strip()

    async def _start_process(
        self, working_dir: Union[str, Path]
    ) -> asyncio.subprocess.Process:
        """Launch the assistant subprocess with piped stdio.

        Raises:
            AssistantSpawnError: If the executable cannot be started.
        """
        logger.debug(
            "Starting assistant",
            extra={
                "command": self.command,
                "working_dir": str(working_dir),
                "timeout": self.timeout_seconds,
            },
        )

        try:
            return await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                cwd=str(working_dir),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("Failed to start assistant CLI: %s", exc)
            raise AssistantSpawnError(self.command, exc) from exc

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        prompt: str,
        stdout_chunks: list[str],
        stderr_chunks: list[str],
    ) -> None:
        """Feed stdin and drain both output streams, then wait for exit.

        The collected chunks are appended in place so that output read
        before a timeout is not lost.
        """

        async def read_stdout():
            async for chunk in self._read_stream(process.stdout):
                stdout_chunks.append(chunk)
                if self.echo is not None:
                    self.echo(chunk)
                logger.debug("assistant stdout: %s", chunk.rstrip("\n"))

        async def read_stderr():
            async for chunk in self._read_stream(process.stderr):
                stderr_chunks.append(chunk)
                logger.debug("assistant stderr: %s", chunk.rstrip("\n"))

        await asyncio.gather(
            self._write_prompt(process, prompt),
            read_stdout(),
            read_stderr(),
        )
        await process.wait()

    async def _write_prompt(
        self, process: asyncio.subprocess.Process, prompt: str
    ) -> None:
        stdin = process.stdin
        if stdin is None:
            return

        try:
            stdin.write(prompt.encode("utf-8"))
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # The process exited before reading its input; its exit code
            # and stderr tell the caller why.
            logger.warning("Assistant closed stdin before the prompt was written")
        finally:
            stdin.close()

    async def _read_stream(self, stream: Optional[asyncio.StreamReader]):
        """Yield decoded chunks from an async stream until EOF."""
        if stream is None:
            return

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            raw = await stream.read(READ_CHUNK_SIZE)
            if not raw:
                tail = decoder.decode(b"", final=True)
                if tail:
                    yield tail
                break
            text = decoder.decode(raw)
            if text:
                yield text

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        try:
            process.kill()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(process.wait(), timeout=5)
        except asyncio.TimeoutError:
            logger.warning("Assistant process did not exit after kill")
