"""Protocol interfaces for gitops dependency injection."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from impactncd.shared.models import ChangeSet, CommitDecision


@runtime_checkable
class ChangePrompter(Protocol):
    """Asks the user what to do with uncommitted changes."""

    async def confirm_commit(self, changes: ChangeSet) -> CommitDecision:
        """Present ``changes`` and collect a commit message.

        Args:
            changes: Status of the repository that was mounted into the container.

        Returns:
            NEXT with a message (and push choice) to commit, CANCEL to leave the tree alone.
        """
        ...
