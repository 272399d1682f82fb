"""Unit tests for the assistant CLI invoker.

Tests subprocess launch, prompt delivery over stdin, output capture,
timeout enforcement and exit code handling for AssistantInvoker.
"""

import asyncio
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from autoclaude.assistant import (
    AssistantInvoker,
    AssistantNonZeroExitError,
    AssistantSpawnError,
    AssistantTimeoutError,
)


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture
def echoed():
    return []


@pytest.fixture
def invoker(echoed):
    return AssistantInvoker(
        command="claude",
        args=["--output-format", "text"],
        timeout_seconds=5,
        echo=echoed.append,
    )


def _make_mock_process(
    returncode: int = 0,
    stdout_chunks: Optional[List[bytes]] = None,
    stderr_chunks: Optional[List[bytes]] = None,
):
    """Build a mock subprocess with readable stdout/stderr streams."""
    process = MagicMock()
    process.returncode = returncode

    process.stdin = MagicMock()
    process.stdin.drain = AsyncMock()

    process.stdout = MagicMock()
    process.stdout.read = AsyncMock(side_effect=list(stdout_chunks or []) + [b""])
    process.stderr = MagicMock()
    process.stderr.read = AsyncMock(side_effect=list(stderr_chunks or []) + [b""])

    process.wait = AsyncMock(return_value=returncode)
    return process


class TestSuccessfulInvocation:
    def test_returns_trimmed_stdout(self, invoker, tmp_path):
        process = _make_mock_process(stdout_chunks=[b"  Fixed the ", b"typo.\n\n"])

        with patch("asyncio.create_subprocess_exec", return_value=process):
            output = run_async(invoker.invoke("Fix it", tmp_path))

        assert output == "Fixed the typo."

    def test_prompt_is_written_to_stdin_then_closed(self, invoker, tmp_path):
        process = _make_mock_process()

        with patch("asyncio.create_subprocess_exec", return_value=process):
            run_async(invoker.invoke("A very long prompt", tmp_path))

        process.stdin.write.assert_called_once_with(b"A very long prompt")
        process.stdin.close.assert_called_once()

    def test_launched_in_working_dir_with_args(self, invoker, tmp_path):
        process = _make_mock_process()

        with patch(
            "asyncio.create_subprocess_exec", return_value=process
        ) as mock_exec:
            run_async(invoker.invoke("prompt", tmp_path))

        args, kwargs = mock_exec.call_args
        assert args == ("claude", "--output-format", "text")
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["stdin"] == asyncio.subprocess.PIPE

    def test_stdout_is_echoed_as_it_arrives(self, invoker, echoed, tmp_path):
        process = _make_mock_process(stdout_chunks=[b"one ", b"two"])

        with patch("asyncio.create_subprocess_exec", return_value=process):
            run_async(invoker.invoke("prompt", tmp_path))

        assert "".join(echoed) == "one two"

    def test_multibyte_characters_split_across_chunks(self, invoker, tmp_path):
        encoded = "café".encode("utf-8")
        process = _make_mock_process(stdout_chunks=[encoded[:4], encoded[4:]])

        with patch("asyncio.create_subprocess_exec", return_value=process):
            output = run_async(invoker.invoke("prompt", tmp_path))

        assert output == "café"

    def test_closed_stdin_does_not_fail_run(self, invoker, tmp_path):
        process = _make_mock_process(stdout_chunks=[b"ok"])
        process.stdin.drain = AsyncMock(side_effect=BrokenPipeError())

        with patch("asyncio.create_subprocess_exec", return_value=process):
            output = run_async(invoker.invoke("prompt", tmp_path))

        assert output == "ok"
        process.stdin.close.assert_called_once()


class TestFailedInvocation:
    def test_nonzero_exit_raises_with_stderr(self, invoker, tmp_path):
        process = _make_mock_process(
            returncode=2, stderr_chunks=[b"Error: not logged in\n"]
        )

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(AssistantNonZeroExitError) as exc_info:
                run_async(invoker.invoke("prompt", tmp_path))

        assert exc_info.value.exit_code == 2
        assert "not logged in" in exc_info.value.stderr
        assert "exited with code 2" in str(exc_info.value)

    def test_missing_executable_raises_spawn_error(self, invoker, tmp_path):
        with patch(
            "asyncio.create_subprocess_exec",
            side_effect=FileNotFoundError("No such file: claude"),
        ):
            with pytest.raises(AssistantSpawnError) as exc_info:
                run_async(invoker.invoke("prompt", tmp_path))

        assert exc_info.value.command == "claude"
        assert isinstance(exc_info.value.cause, FileNotFoundError)


class TestTimeout:
    def test_timeout_kills_process_and_raises(self, tmp_path):
        invoker = AssistantInvoker(timeout_seconds=0.05, echo=None)
        process = _make_mock_process()

        async def never_finishes(_size):
            await asyncio.sleep(10)
            return b""

        process.stdout.read = AsyncMock(side_effect=never_finishes)

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(AssistantTimeoutError) as exc_info:
                run_async(invoker.invoke("prompt", tmp_path))

        process.kill.assert_called_once()
        assert exc_info.value.timeout_seconds == 0.05
        assert "timed out" in str(exc_info.value)

    def test_kill_of_exited_process_is_tolerated(self, tmp_path):
        invoker = AssistantInvoker(timeout_seconds=0.05, echo=None)
        process = _make_mock_process()
        process.kill.side_effect = ProcessLookupError()

        async def never_finishes(_size):
            await asyncio.sleep(10)
            return b""

        process.stderr.read = AsyncMock(side_effect=never_finishes)

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(AssistantTimeoutError):
                run_async(invoker.invoke("prompt", tmp_path))
