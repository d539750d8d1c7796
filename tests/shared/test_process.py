"""Tests for the async subprocess runner."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from impactncd.shared.exceptions import CommandNotFoundError, CommandTimeoutError
from impactncd.shared.process import CommandResult, redact, run_command


class TestRunCommand:
    async def test_success(self, mock_proc: AsyncMock) -> None:
        mock_proc.communicate.return_value = (b"hello\n", b"warn\n")

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc) as spawn:
            result = await run_command(["echo", "hello"], timeout=5)

        assert result.ok
        assert result.stdout == "hello"
        assert result.stderr == "warn"
        assert result.output == "hello\nwarn"
        assert spawn.call_args.args == ("echo", "hello")

    async def test_input_text_sent(self, mock_proc: AsyncMock) -> None:
        with patch("asyncio.create_subprocess_exec", return_value=mock_proc):
            await run_command(["cat"], input_text="y\n")

        mock_proc.communicate.assert_awaited_once_with(b"y\n")

    async def test_nonzero_exit(self, mock_proc: AsyncMock) -> None:
        mock_proc.returncode = 2
        mock_proc.communicate.return_value = (b"", b"boom")

        with patch("asyncio.create_subprocess_exec", return_value=mock_proc):
            result = await run_command(["false"])

        assert not result.ok
        assert result.returncode == 2

    async def test_binary_not_found(self) -> None:
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("docker")):
            with pytest.raises(CommandNotFoundError, match="docker"):
                await run_command(["docker", "ps"])

    async def test_timeout_kills(self) -> None:
        proc = MagicMock()
        proc.communicate = AsyncMock(side_effect=asyncio.TimeoutError)
        proc.kill = MagicMock()
        proc.wait = AsyncMock(return_value=-9)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(CommandTimeoutError, match="timed out"):
                await run_command(["sleep", "10"], timeout=0.1)

        proc.kill.assert_called_once()
        proc.wait.assert_awaited_once()

    async def test_debug_log_masks_password(self, mock_proc: AsyncMock, caplog: pytest.LogCaptureFixture) -> None:
        with (
            caplog.at_level(logging.DEBUG, logger="impactncd.shared.process"),
            patch("asyncio.create_subprocess_exec", return_value=mock_proc) as spawn,
        ):
            await run_command(["docker", "run", "-e", "PASSWORD=s3cret", "-e", "USERID=1000"])

        assert "s3cret" not in caplog.text
        assert "exec: docker run -e PASSWORD=*** -e USERID=1000" in caplog.text
        assert "PASSWORD=s3cret" in spawn.call_args.args


class TestCommandResult:
    def test_output_skips_empty(self) -> None:
        assert CommandResult(args=(), returncode=0, stdout="", stderr="err").output == "err"


class TestRedact:
    def test_masks_password_assignment(self) -> None:
        assert redact(["-e", "PASSWORD=secret", "-p"]) == ["-e", "PASSWORD=***", "-p"]

    def test_leaves_other_arguments(self) -> None:
        assert redact(("run", "-e", "USERID=1000")) == ["run", "-e", "USERID=1000"]
