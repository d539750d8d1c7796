"""Establish key-based SSH access to the workstation.

Order of attempts once the per-user key is rejected:

1. any access the client already has (agent / default identities),
2. password session via paramiko,
3. password session via sshpass.

If the per-user key still does not work afterwards the caller cannot continue.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from impactncd.remote.gateway import SshGateway, authorize_key_script
from impactncd.remote.interfaces import PasswordBootstrap
from impactncd.remote.keys import read_key_file
from impactncd.shared.exceptions import PreconditionError, SshAuthError, SshTransportError

logger = logging.getLogger(__name__)


def key_marker(user_name: str) -> str:
    return f"impactncd-{user_name}"


class KeyProvisioner:
    def __init__(self, gateway: SshGateway, bootstrappers: Sequence[PasswordBootstrap] = ()) -> None:
        self._gateway = gateway
        self._bootstrappers = tuple(bootstrappers)

    async def ensure_access(self, *, public_key_path: str, user_name: str, password: str | None) -> bool:
        """Make sure the per-user key can log in.

        Returns:
            True if the key had to be installed, False if it already worked.

        Raises:
            PreconditionError: If the local public key is missing.
            SshAuthError: If key authentication is still impossible afterwards.
        """
        target = self._gateway.target
        if await self._gateway.probe():
            logger.info("key authentication to %s already works", target.ssh_target)
            return False

        public_key = await read_key_file(public_key_path)
        if public_key is None:
            raise PreconditionError(f"public key not found: {public_key_path}")
        script = authorize_key_script(public_key, key_marker(user_name))

        installed = await self._install_with_existing_access(script)
        if not installed and password:
            installed = await self._install_with_password(script, password)
        elif not installed:
            logger.warning("no password supplied, cannot bootstrap key on %s", target.ssh_target)

        if not await self._gateway.probe():
            raise SshAuthError(
                f"key authentication to {target.ssh_target} failed after provisioning; cannot continue"
            )
        logger.info("installed key for %s on %s", user_name, target.ssh_target)
        return True

    async def _install_with_existing_access(self, script: str) -> bool:
        try:
            result = await self._gateway.run(script, use_identity=False)
        except SshTransportError as exc:
            logger.debug("no pre-existing ssh access: %s", exc)
            return False
        return result.ok

    async def _install_with_password(self, script: str, password: str) -> bool:
        for bootstrap in self._bootstrappers:
            try:
                if await bootstrap.run(self._gateway.target, password, script):
                    logger.info("key installed via %s bootstrap", bootstrap.name)
                    return True
            except SshTransportError as exc:
                logger.warning("%s bootstrap failed: %s", bootstrap.name, exc)
        return False
