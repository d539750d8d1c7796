"""Tests for GitRepository."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

from impactncd.gitops.repository import GitRepository
from impactncd.shared.exceptions import CommandNotFoundError, SshTransportError
from impactncd.shared.process import CommandResult


def _result(stdout: str = "", returncode: int = 0, stderr: str = "") -> CommandResult:
    return CommandResult(args=("git",), returncode=returncode, stdout=stdout, stderr=stderr)


class TestLocalRepository:
    async def test_git_uses_dash_c(self) -> None:
        repo = GitRepository("/work/repo")
        with patch("impactncd.gitops.repository.run_command", AsyncMock(return_value=_result())) as run:
            await repo.git("status", "--porcelain", env={"GIT_TRACE": "0"})

        assert run.call_args.args[0] == ["git", "-C", "/work/repo", "status", "--porcelain"]
        assert run.call_args.kwargs["env"]["GIT_TRACE"] == "0"

    async def test_baseline(self) -> None:
        repo = GitRepository("/work/repo")
        run = AsyncMock(side_effect=[_result("abc123"), _result(" M a.R")])
        with patch("impactncd.gitops.repository.run_command", run):
            baseline = await repo.baseline()

        assert baseline is not None
        assert baseline.commit == "abc123"
        assert baseline.status == " M a.R"

    async def test_baseline_not_a_checkout(self) -> None:
        repo = GitRepository("/work/repo")
        run = AsyncMock(side_effect=[_result(returncode=128), _result(returncode=128)])
        with patch("impactncd.gitops.repository.run_command", run):
            assert await repo.baseline() is None

    async def test_baseline_without_git(self) -> None:
        repo = GitRepository("/work/repo")
        with patch("impactncd.gitops.repository.run_command", AsyncMock(side_effect=CommandNotFoundError("git"))):
            assert await repo.baseline() is None

    async def test_change_set(self) -> None:
        repo = GitRepository("/work/repo")
        run = AsyncMock(
            side_effect=[_result(" M a.R\n?? b.R\n"), _result("main"), _result("https://github.com/o/r.git")]
        )
        with patch("impactncd.gitops.repository.run_command", run):
            changes = await repo.change_set()

        assert changes is not None
        assert changes.status_lines == (" M a.R", "?? b.R")
        assert changes.branch == "main"
        assert changes.origin_url == "https://github.com/o/r.git"


class TestRemoteRepository:
    async def test_git_runs_in_repo_dir(self) -> None:
        gateway = MagicMock()
        gateway.run = AsyncMock(return_value=_result())
        repo = GitRepository("/srv/My Repo", gateway)

        await repo.git("commit", "-m", "it's done", env={"GIT_SSH_COMMAND": "ssh -i k"})

        script = gateway.run.call_args.args[0]
        assert script.startswith("cd '/srv/My Repo' && GIT_SSH_COMMAND='ssh -i k' git commit -m ")
        assert repo.is_remote

    async def test_change_set_single_round_trip(self) -> None:
        gateway = MagicMock()
        gateway.run = AsyncMock(
            return_value=_result(
                " M a.R\n--impactncd-branch--\nfeature\n--impactncd-origin--\ngit@github.com:o/r.git\n"
            )
        )
        repo = GitRepository("/srv/repo", gateway)

        changes = await repo.change_set()

        gateway.run.assert_awaited_once()
        assert changes is not None
        assert changes.status_lines == (" M a.R",)
        assert changes.branch == "feature"
        assert changes.origin_url == "git@github.com:o/r.git"

    async def test_change_set_transport_failure(self) -> None:
        gateway = MagicMock()
        gateway.run = AsyncMock(side_effect=SshTransportError("down"))
        assert await GitRepository("/srv/repo", gateway).change_set() is None
