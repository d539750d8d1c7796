"""Protocol interfaces for filesystem access on the Docker host."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class HostFiles(Protocol):
    """Read-only view of the filesystem the containers mount from.

    Implemented locally with aiofiles and remotely by the SSH gateway.
    """

    async def read_file(self, path: str) -> str | None:
        """Return file content, or None if it cannot be read."""
        ...

    async def path_exists(self, path: str) -> bool:
        """Return True if ``path`` is an existing regular file."""
        ...

    async def directory_exists(self, path: str) -> bool:
        """Return True if ``path`` is an existing directory."""
        ...
