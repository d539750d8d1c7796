"""SSH-mediated operations against the remote workstation."""

from __future__ import annotations

import base64
import json
import logging
import posixpath
import shlex

from pydantic import ValidationError

from impactncd.shared.exceptions import CommandTimeoutError, SshTransportError
from impactncd.shared.models import RemoteLocation, RunMetadata
from impactncd.shared.process import CommandResult, run_command

logger = logging.getLogger(__name__)

# OpenSSH reserves exit status 255 for its own connection/auth failures.
SSH_TRANSPORT_EXIT = 255
_PROBE_TOKEN = "impactncd-ok"


class SshGateway:
    """Run commands on ``<user>@<host>`` through the OpenSSH client.

    Every remote operation goes through :meth:`run`. Helpers built on it
    convert transport failures into ``False`` / ``None`` so callers can treat
    the remote side as temporarily unavailable.
    """

    def __init__(
        self,
        target: RemoteLocation,
        identity_file: str,
        *,
        ssh_bin: str = "ssh",
        connect_timeout: int = 10,
        command_timeout: int = 120,
        metadata_dir: str = "/tmp/impactncd",
    ) -> None:
        self.target = target
        self.identity_file = identity_file
        self._ssh_bin = ssh_bin
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._metadata_dir = metadata_dir

    def ssh_args(self, *, use_identity: bool = True, connect_timeout: int | None = None) -> list[str]:
        args = [self._ssh_bin]
        if use_identity:
            args += ["-i", self.identity_file, "-o", "IdentitiesOnly=yes"]
        args += [
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={connect_timeout or self._connect_timeout}",
            "-o",
            "StrictHostKeyChecking=accept-new",
            self.target.ssh_target,
        ]
        return args

    async def run(
        self,
        command: str,
        *,
        timeout: float | None = None,
        connect_timeout: int | None = None,
        use_identity: bool = True,
    ) -> CommandResult:
        """Execute ``command`` with the remote login shell.

        Raises:
            SshTransportError: If the connection failed or timed out.
            CommandNotFoundError: If the ssh client is not installed.
        """
        args = self.ssh_args(use_identity=use_identity, connect_timeout=connect_timeout)
        try:
            result = await run_command([*args, command], timeout=timeout or self._command_timeout)
        except CommandTimeoutError as exc:
            raise SshTransportError(f"ssh to {self.target.ssh_target} timed out") from exc
        if result.returncode == SSH_TRANSPORT_EXIT:
            raise SshTransportError(f"ssh to {self.target.ssh_target} failed: {result.stderr}")
        return result

    async def try_run(self, command: str, *, timeout: float | None = None) -> CommandResult | None:
        try:
            return await self.run(command, timeout=timeout)
        except SshTransportError as exc:
            logger.warning("remote command unavailable: %s", exc)
            return None

    async def probe(self, *, use_identity: bool = True) -> bool:
        """Return True when non-interactive login works."""
        try:
            result = await self.run(f"echo {_PROBE_TOKEN}", use_identity=use_identity)
        except SshTransportError as exc:
            logger.debug("ssh probe failed for %s: %s", self.target.ssh_target, exc)
            return False
        return result.ok and _PROBE_TOKEN in result.stdout

    # ── filesystem ──────────────────────────────────────────────

    async def path_exists(self, path: str) -> bool:
        result = await self.try_run(f"test -f {shlex.quote(path)}")
        return result is not None and result.ok

    async def directory_exists(self, path: str) -> bool:
        result = await self.try_run(f"test -d {shlex.quote(path)}")
        return result is not None and result.ok

    async def read_file(self, path: str) -> str | None:
        result = await self.try_run(f"cat {shlex.quote(path)}")
        if result is None or not result.ok:
            return None
        return result.stdout

    async def write_file(self, path: str, content: str, *, mode: str = "600") -> bool:
        """Write ``content`` to ``path``; base64 transport avoids quoting issues."""
        encoded = base64.b64encode(content.encode()).decode("ascii")
        quoted = shlex.quote(path)
        command = (
            f"umask 077 && mkdir -p {shlex.quote(posixpath.dirname(path) or '.')} && "
            f"printf %s {encoded} | base64 -d > {quoted} && chmod {mode} {quoted}"
        )
        result = await self.try_run(command)
        if result is None or not result.ok:
            logger.warning("failed to write remote file %s", path)
            return False
        return True

    async def remove_file(self, path: str) -> bool:
        result = await self.try_run(f"rm -f {shlex.quote(path)}")
        return result is not None and result.ok

    async def docker_available(self) -> bool:
        result = await self.try_run("docker version --format '{{.Server.Version}}'")
        if result is None or not result.ok:
            return False
        logger.info("remote docker %s on %s", result.stdout, self.target.ip)
        return True

    # ── run metadata ────────────────────────────────────────────

    def metadata_path(self, container_name: str) -> str:
        return posixpath.join(self._metadata_dir, f"{container_name}.json")

    async def write_metadata(self, metadata: RunMetadata) -> bool:
        payload = metadata.model_dump_json(by_alias=True)
        return await self.write_file(self.metadata_path(metadata.container), payload)

    async def read_metadata(self, container_name: str) -> RunMetadata | None:
        raw = await self.read_file(self.metadata_path(container_name))
        if not raw:
            return None
        try:
            return RunMetadata.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("ignoring malformed run metadata for %s: %s", container_name, exc)
            return None

    async def delete_metadata(self, container_name: str) -> bool:
        return await self.remove_file(self.metadata_path(container_name))


def authorize_key_script(public_key: str, marker: str) -> str:
    """Shell script that (re)installs ``public_key`` tagged with ``marker``.

    Lines whose last field equals ``marker`` are dropped first, so running the
    script repeatedly leaves exactly one entry per user.
    """
    entry = f"{public_key.strip()} {marker}"
    encoded = base64.b64encode(entry.encode()).decode("ascii")
    keys = "$HOME/.ssh/authorized_keys"
    return (
        "umask 077 && mkdir -p $HOME/.ssh && touch " + keys + " && "
        f"awk -v m={shlex.quote(marker)} '$NF != m' {keys} > {keys}.impactncd && "
        f"printf %s {encoded} | base64 -d >> {keys}.impactncd && echo >> {keys}.impactncd && "
        f"mv {keys}.impactncd {keys} && chmod 600 {keys} && chmod 700 $HOME/.ssh"
    )
