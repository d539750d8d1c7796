"""Protocol interfaces for remote access dependency injection."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from impactncd.shared.models import RemoteLocation


@runtime_checkable
class PasswordBootstrap(Protocol):
    """One-shot password-authenticated command execution."""

    name: str

    async def run(self, target: RemoteLocation, password: str, command: str) -> bool:
        """Run ``command`` on ``target`` authenticating with ``password``.

        Args:
            target: Remote workstation.
            password: Login password of ``target.user``.
            command: Shell command to execute.

        Returns:
            True if the command exited 0.

        Raises:
            SshTransportError: If the session could not be established.
        """
        ...
