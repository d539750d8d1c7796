"""Offer commit/push of repository changes after a container stops."""

from __future__ import annotations

import logging
import re

from impactncd.gitops.interfaces import ChangePrompter
from impactncd.gitops.repository import GitRepository
from impactncd.remote.keys import add_to_agent
from impactncd.shared.enums import DialogResult
from impactncd.shared.exceptions import GitError
from impactncd.shared.models import GitBaseline

logger = logging.getLogger(__name__)

_HTTPS_GITHUB_RE = re.compile(r"^https://(?:[^@/]+@)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$")


def to_ssh_remote(url: str) -> str | None:
    """``https://github.com/o/r(.git)`` → ``git@github.com:o/r.git``; None for anything else."""
    match = _HTTPS_GITHUB_RE.match(url.strip())
    if not match:
        return None
    owner, repo = match.groups()
    return f"git@github.com:{owner}/{repo}.git"


class GitChangeNotifier:
    """Detect uncommitted work and, if confirmed, commit and push it.

    Pushes try the local ssh-agent first and fall back to a push scoped with
    ``GIT_SSH_COMMAND`` pointing at the per-user key. Remote repositories push
    from the Docker host, so they use ``remote_key_path``, the copy uploaded there.
    """

    def __init__(
        self,
        prompter: ChangePrompter,
        *,
        key_path: str | None = None,
        remote_key_path: str | None = None,
    ) -> None:
        self._prompter = prompter
        self._key_path = key_path
        self._remote_key_path = remote_key_path

    async def notify(self, repo: GitRepository, *, baseline: GitBaseline | None = None) -> bool:
        """Run the check for ``repo``.

        Returns:
            True if a commit was created.

        Raises:
            GitError: If the confirmed commit or push fails.
        """
        changes = await repo.change_set()
        if changes is None:
            return False
        if baseline is not None and baseline.commit:
            head = await repo.git("rev-parse", "HEAD")
            if head.ok and head.stdout != baseline.commit:
                logger.info("HEAD moved during session: %s -> %s", baseline.commit[:8], head.stdout[:8])
        if not changes.has_changes:
            logger.info("no uncommitted changes in %s", repo.repo_path)
            return False

        decision = await self._prompter.confirm_commit(changes)
        if decision.result is DialogResult.CANCEL or not decision.message.strip():
            logger.info("commit declined for %s", repo.repo_path)
            return False

        await self._ensure_ssh_origin(repo, changes.origin_url)

        added = await repo.git("add", "-A")
        if not added.ok:
            raise GitError(f"git add failed: {added.output}")
        committed = await repo.git("commit", "-m", decision.message.strip())
        if not committed.ok:
            raise GitError(f"git commit failed: {committed.output}")
        logger.info("committed changes in %s", repo.repo_path)

        if decision.push:
            await self._push(repo, changes.branch)
        return True

    async def _ensure_ssh_origin(self, repo: GitRepository, origin_url: str) -> None:
        ssh_url = to_ssh_remote(origin_url)
        if ssh_url is None:
            return
        result = await repo.git("remote", "set-url", "origin", ssh_url)
        if result.ok:
            logger.info("rewrote origin %s -> %s", origin_url, ssh_url)
        else:
            logger.warning("could not rewrite origin to ssh: %s", result.stderr)

    async def _push(self, repo: GitRepository, branch: str) -> None:
        target = branch if branch and branch != "HEAD" else "HEAD"

        if not repo.is_remote and self._key_path and await add_to_agent(self._key_path):
            pushed = await repo.git("push", "origin", target)
            if pushed.ok:
                logger.info("pushed %s via ssh-agent", target)
                return
            logger.warning("agent push failed, retrying with explicit key: %s", pushed.stderr)

        env: dict[str, str] = {}
        key_path = self._remote_key_path if repo.is_remote else self._key_path
        if key_path:
            env["GIT_SSH_COMMAND"] = f'ssh -i "{key_path}" -o IdentitiesOnly=yes'
        pushed = await repo.git("push", "origin", target, env=env)
        if not pushed.ok:
            raise GitError(f"git push failed: {pushed.output}")
        logger.info("pushed %s", target)
