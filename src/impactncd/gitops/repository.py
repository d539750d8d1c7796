"""Git access to the mounted repository, locally or through SSH."""

from __future__ import annotations

import logging
import os
import shlex

from impactncd.remote.gateway import SshGateway
from impactncd.shared.exceptions import CommandNotFoundError, CommandTimeoutError, SshTransportError
from impactncd.shared.models import ChangeSet, GitBaseline
from impactncd.shared.process import CommandResult, run_command

logger = logging.getLogger(__name__)

_BRANCH_MARK = "--impactncd-branch--"
_ORIGIN_MARK = "--impactncd-origin--"


class GitRepository:
    """Run git in ``repo_path`` on the machine that holds it."""

    def __init__(
        self,
        repo_path: str,
        gateway: SshGateway | None = None,
        *,
        git_bin: str = "git",
        timeout: int = 120,
    ) -> None:
        self.repo_path = repo_path
        self._gateway = gateway
        self._git_bin = git_bin
        self._timeout = timeout

    @property
    def is_remote(self) -> bool:
        return self._gateway is not None

    async def git(self, *args: str, env: dict[str, str] | None = None) -> CommandResult:
        """Run ``git <args>``; ``env`` adds variables for this call only.

        Raises:
            SshTransportError: Remote only, if the connection failed.
            CommandNotFoundError: Local only, if git is not installed.
        """
        if self._gateway is not None:
            assignments = " ".join(f"{k}={shlex.quote(v)}" for k, v in (env or {}).items())
            command = " ".join(shlex.quote(a) for a in (self._git_bin, *args))
            script = f"cd {shlex.quote(self.repo_path)} && {assignments + ' ' if assignments else ''}{command}"
            return await self._gateway.run(script, timeout=self._timeout)

        full_env = dict(os.environ)
        full_env.update(env or {})
        return await run_command(
            [self._git_bin, "-C", self.repo_path, *args], timeout=self._timeout, env=full_env
        )

    async def baseline(self) -> GitBaseline | None:
        """Snapshot HEAD and working-tree status. Best-effort."""
        try:
            head = await self.git("rev-parse", "HEAD")
            status = await self.git("status", "--porcelain")
        except (SshTransportError, CommandNotFoundError, CommandTimeoutError) as exc:
            logger.warning("git baseline unavailable for %s: %s", self.repo_path, exc)
            return None
        if not head.ok:
            logger.warning("git baseline skipped, %s is not a git checkout", self.repo_path)
            return None
        return GitBaseline(commit=head.stdout or None, status=status.stdout if status.ok else "")

    async def change_set(self) -> ChangeSet | None:
        """Porcelain status, current branch and origin URL; None if git is unavailable."""
        try:
            if self._gateway is not None:
                return await self._remote_change_set(self._gateway)
            return await self._local_change_set()
        except (SshTransportError, CommandNotFoundError, CommandTimeoutError) as exc:
            logger.warning("cannot read git status for %s: %s", self.repo_path, exc)
            return None

    async def _local_change_set(self) -> ChangeSet | None:
        status = await self.git("status", "--porcelain")
        if not status.ok:
            logger.warning("git status failed in %s: %s", self.repo_path, status.stderr)
            return None
        branch = await self.git("rev-parse", "--abbrev-ref", "HEAD")
        origin = await self.git("remote", "get-url", "origin")
        return ChangeSet(
            repo_path=self.repo_path,
            status_lines=tuple(line for line in status.stdout.splitlines() if line.strip()),
            branch=branch.stdout if branch.ok else "",
            origin_url=origin.stdout if origin.ok else "",
        )

    async def _remote_change_set(self, gateway: SshGateway) -> ChangeSet | None:
        script = (
            f"cd {shlex.quote(self.repo_path)} && git status --porcelain && "
            f"echo {_BRANCH_MARK} && git rev-parse --abbrev-ref HEAD && "
            f"echo {_ORIGIN_MARK} && (git remote get-url origin || true)"
        )
        result = await gateway.run(script, timeout=self._timeout)
        if not result.ok or _BRANCH_MARK not in result.stdout:
            logger.warning("remote git status failed in %s: %s", self.repo_path, result.stderr)
            return None
        status_part, rest = result.stdout.split(_BRANCH_MARK, 1)
        branch_part, _, origin_part = rest.partition(_ORIGIN_MARK)
        return ChangeSet(
            repo_path=self.repo_path,
            status_lines=tuple(line for line in status_part.splitlines() if line.strip()),
            branch=branch_part.strip(),
            origin_url=origin_part.strip(),
        )
