"""Console and non-interactive implementations of ``ChangePrompter``."""

from __future__ import annotations

import asyncio
import logging

from impactncd.shared.enums import DialogResult
from impactncd.shared.models import ChangeSet, CommitDecision

logger = logging.getLogger(__name__)


class ConsolePrompter:
    """Prompt on stdin/stdout."""

    async def confirm_commit(self, changes: ChangeSet) -> CommitDecision:
        print(f"\nUncommitted changes in {changes.repo_path} (branch {changes.branch or '?'}):")
        for line in changes.status_lines:
            print(f"  {line}")

        loop = asyncio.get_running_loop()
        message = (await loop.run_in_executor(None, input, "Commit message (empty to skip): ")).strip()
        if not message:
            return CommitDecision(result=DialogResult.CANCEL)
        answer = (await loop.run_in_executor(None, input, "Push to origin? [y/N]: ")).strip().lower()
        return CommitDecision(result=DialogResult.NEXT, message=message, push=answer in ("y", "yes"))


class NonInteractivePrompter:
    """Never commits; only reports what was left uncommitted."""

    async def confirm_commit(self, changes: ChangeSet) -> CommitDecision:
        logger.warning(
            "%d uncommitted change(s) left in %s", len(changes.status_lines), changes.repo_path
        )
        return CommitDecision(result=DialogResult.CANCEL)
