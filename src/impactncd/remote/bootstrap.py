"""Password-authenticated one-shot sessions used before key auth exists."""

from __future__ import annotations

import asyncio
import logging
import os
from functools import partial

import paramiko

from impactncd.shared.exceptions import CommandNotFoundError, CommandTimeoutError, SshTransportError
from impactncd.shared.models import RemoteLocation
from impactncd.shared.process import run_command

logger = logging.getLogger(__name__)


class ParamikoBootstrap:
    """Run one command over a password-authenticated paramiko session.

    Implements the ``PasswordBootstrap`` protocol.
    """

    name = "paramiko"

    def __init__(self, *, timeout: int = 30) -> None:
        self._timeout = timeout

    async def run(self, target: RemoteLocation, password: str, command: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(self._run_sync, target, password, command))

    def _run_sync(self, target: RemoteLocation, password: str, command: str) -> bool:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=target.ip,
                username=target.user,
                password=password,
                timeout=self._timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            _, stdout, stderr = client.exec_command(command, timeout=self._timeout)
            rc = stdout.channel.recv_exit_status()
            if rc != 0:
                err = stderr.read().decode(errors="replace")
                logger.warning("bootstrap command on %s exited %d: %s", target.ip, rc, err)
            return rc == 0
        except (paramiko.SSHException, OSError) as exc:
            raise SshTransportError(f"password session to {target.ssh_target} failed: {exc}") from exc
        finally:
            client.close()


class SshpassBootstrap:
    """Legacy path: OpenSSH driven by ``sshpass`` with the password in the environment.

    Implements the ``PasswordBootstrap`` protocol.
    """

    name = "sshpass"

    def __init__(self, *, sshpass_bin: str = "sshpass", ssh_bin: str = "ssh", timeout: int = 30) -> None:
        self._sshpass_bin = sshpass_bin
        self._ssh_bin = ssh_bin
        self._timeout = timeout

    async def run(self, target: RemoteLocation, password: str, command: str) -> bool:
        env = dict(os.environ)
        env["SSHPASS"] = password
        args = [
            self._sshpass_bin,
            "-e",
            self._ssh_bin,
            "-o",
            "PubkeyAuthentication=no",
            "-o",
            "PreferredAuthentications=password,keyboard-interactive",
            "-o",
            f"ConnectTimeout={self._timeout}",
            "-o",
            "StrictHostKeyChecking=accept-new",
            target.ssh_target,
            command,
        ]
        try:
            result = await run_command(args, env=env, timeout=self._timeout * 2)
        except (CommandNotFoundError, CommandTimeoutError) as exc:
            raise SshTransportError(f"sshpass session to {target.ssh_target} failed: {exc}") from exc
        if not result.ok:
            logger.warning("sshpass bootstrap on %s exited %d: %s", target.ip, result.returncode, result.stderr)
        return result.ok
