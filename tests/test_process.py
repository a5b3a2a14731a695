"""
Tests for the async subprocess wrapper.

Run with: pytest tests/test_process.py -v
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from autodeploy.core.process import CommandResult, run_command


class TestRunCommand:
    """Tests for run_command."""

    @pytest.mark.asyncio
    async def test_success(self):
        mock_process = AsyncMock()
        mock_process.communicate = AsyncMock(return_value=(b"hello\n", b""))
        mock_process.returncode = 0

        with patch("asyncio.create_subprocess_exec", return_value=mock_process) as mock_exec:
            result = await run_command(["echo", "hello"], cwd="/tmp")

        assert result.ok
        assert result.stdout == "hello"
        assert mock_exec.call_args.kwargs["cwd"] == "/tmp"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        mock_process = AsyncMock()
        mock_process.communicate = AsyncMock(return_value=(b"", b"fatal: not found\n"))
        mock_process.returncode = 128

        with patch("asyncio.create_subprocess_exec", return_value=mock_process):
            result = await run_command(["git", "clone", "x"])

        assert not result.ok
        assert result.return_code == 128
        assert result.stderr == "fatal: not found"

    @pytest.mark.asyncio
    async def test_binary_missing(self):
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("docker")):
            result = await run_command(["docker", "version"])

        assert result.return_code == -1
        assert "docker" in result.stderr

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        async def hang():
            await asyncio.sleep(10)

        mock_process = MagicMock()
        mock_process.communicate = hang
        mock_process.wait = AsyncMock()

        with patch("asyncio.create_subprocess_exec", return_value=mock_process):
            result = await run_command(["sleep", "10"], timeout=0.01)

        assert result.timed_out
        assert not result.ok
        mock_process.kill.assert_called_once()

    def test_output_tail(self):
        result = CommandResult(return_code=1, stdout="\n".join(f"line {i}" for i in range(30)), stderr="boom")

        tail = result.output_tail(lines=3)

        assert tail == "line 28\nline 29\nboom"

    @pytest.mark.asyncio
    async def test_timeout_after_process_exited(self):
        async def hang():
            await asyncio.sleep(10)

        mock_process = MagicMock()
        mock_process.communicate = hang
        mock_process.kill.side_effect = ProcessLookupError()
        mock_process.wait = AsyncMock()

        with patch("asyncio.create_subprocess_exec", return_value=mock_process):
            result = await run_command(["sleep", "10"], timeout=0.01)

        assert result.timed_out
        mock_process.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancellation_kills_and_reaps(self):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.sleep(10)

        mock_process = MagicMock()
        mock_process.communicate = hang
        mock_process.wait = AsyncMock()

        with patch("asyncio.create_subprocess_exec", return_value=mock_process):
            task = asyncio.create_task(run_command(["docker", "build", "."]))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        mock_process.kill.assert_called_once()
        mock_process.wait.assert_awaited_once()
