"""Tests for DockerCli."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from impactncd.container.cli import DockerCli
from impactncd.container.endpoint import DockerEndpoint
from impactncd.shared.exceptions import CommandTimeoutError, ContainerStartError
from impactncd.shared.process import CommandResult


def _result(stdout: str = "", returncode: int = 0, stderr: str = "") -> CommandResult:
    return CommandResult(args=("docker",), returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def cli() -> DockerCli:
    return DockerCli(DockerEndpoint(context="impactncd-10.0.0.5", ssh_url="ssh://ws@10.0.0.5"), timeout=5)


class TestRunContainer:
    async def test_returns_id(self, cli: DockerCli) -> None:
        with patch("impactncd.container.cli.run_command", AsyncMock(return_value=_result("abc123\n"))) as run:
            assert await cli.run_container(["run", "-d", "img"]) == "abc123"

        assert run.call_args.args[0] == ["docker", "--context", "impactncd-10.0.0.5", "run", "-d", "img"]

    async def test_failure_carries_output(self, cli: DockerCli) -> None:
        failed = _result(returncode=125, stderr="port is already allocated")
        with patch("impactncd.container.cli.run_command", AsyncMock(return_value=failed)):
            with pytest.raises(ContainerStartError) as exc_info:
                await cli.run_container(["run", "img"])

        assert "already allocated" in exc_info.value.output


class TestBuild:
    async def test_build_args(self, cli: DockerCli) -> None:
        with patch("impactncd.container.cli.run_command", AsyncMock(return_value=_result())) as run:
            result = await cli.build("docker_setup/Dockerfile", "img", cwd="/repo")

        assert result.ok
        assert run.call_args.args[0][-6:] == ["build", "-f", "docker_setup/Dockerfile", "-t", "img", "."]
        assert run.call_args.kwargs["cwd"] == "/repo"

    async def test_timeout_is_failure(self, cli: DockerCli) -> None:
        with patch("impactncd.container.cli.run_command", AsyncMock(side_effect=CommandTimeoutError("slow"))):
            result = await cli.build("Dockerfile", "img")
        assert result.returncode == -1


class TestServerVersion:
    async def test_version(self, cli: DockerCli) -> None:
        with patch("impactncd.container.cli.run_command", AsyncMock(return_value=_result("27.1.1"))):
            assert await cli.server_version() == "27.1.1"

    async def test_daemon_down(self, cli: DockerCli) -> None:
        with patch("impactncd.container.cli.run_command", AsyncMock(return_value=_result(returncode=1))):
            assert await cli.server_version() is None


class TestContext:
    async def test_existing_context(self, cli: DockerCli) -> None:
        with patch("impactncd.container.cli.run_command", AsyncMock(return_value=_result())) as run:
            assert not await cli.ensure_context("impactncd-10.0.0.5", "ssh://ws@10.0.0.5")
        run.assert_awaited_once()

    async def test_creates_context(self, cli: DockerCli) -> None:
        run = AsyncMock(side_effect=[_result(returncode=1), _result()])
        with patch("impactncd.container.cli.run_command", run):
            assert await cli.ensure_context("impactncd-10.0.0.5", "ssh://ws@10.0.0.5")

        create_args = run.call_args_list[1].args[0]
        assert create_args == [
            "docker", "context", "create", "impactncd-10.0.0.5", "--docker", "host=ssh://ws@10.0.0.5"
        ]  # fmt: skip

    async def test_create_failure(self, cli: DockerCli) -> None:
        run = AsyncMock(side_effect=[_result(returncode=1), _result(returncode=1, stderr="bad host")])
        with patch("impactncd.container.cli.run_command", run):
            with pytest.raises(ContainerStartError, match="context"):
                await cli.ensure_context("c", "ssh://x")
