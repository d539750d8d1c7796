"""Local SSH key material: key pairs, known_hosts and ssh-agent."""

from __future__ import annotations

import logging
import os

import aiofiles  # type: ignore[import-untyped]

from impactncd.shared.exceptions import CommandNotFoundError, CommandTimeoutError, SshAuthError
from impactncd.shared.process import run_command

logger = logging.getLogger(__name__)


async def ensure_key_pair(private_key: str, *, comment: str, ssh_keygen_bin: str = "ssh-keygen") -> bool:
    """Create an ed25519 key pair at ``private_key`` unless one exists.

    Returns:
        True if a new pair was generated.

    Raises:
        SshAuthError: If ssh-keygen fails.
    """
    if os.path.isfile(private_key) and os.path.isfile(f"{private_key}.pub"):
        return False

    os.makedirs(os.path.dirname(private_key) or ".", mode=0o700, exist_ok=True)
    result = await run_command(
        [ssh_keygen_bin, "-t", "ed25519", "-C", comment, "-f", private_key, "-N", "", "-q"],
        timeout=30,
        input_text="y\n",
    )
    if not result.ok:
        raise SshAuthError(f"ssh-keygen failed for {private_key}: {result.output}")
    logger.info("generated ssh key pair %s", private_key)
    return True


async def read_key_file(path: str) -> str | None:
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return (await f.read()).strip() or None
    except OSError as exc:
        logger.warning("cannot read key file %s: %s", path, exc)
        return None


async def ensure_known_host(known_hosts: str, host: str = "github.com", *, keyscan_bin: str = "ssh-keyscan") -> bool:
    """Append ``host``'s keys to ``known_hosts`` if it has no entry yet.

    Best-effort: failures are logged and reported as False.
    """
    existing = ""
    if os.path.isfile(known_hosts):
        async with aiofiles.open(known_hosts, "r", encoding="utf-8") as f:
            existing = await f.read()
    if any(line.split(" ", 1)[0].split(",")[0] == host for line in existing.splitlines()):
        return True

    try:
        result = await run_command([keyscan_bin, "-t", "ed25519,ecdsa,rsa", host], timeout=30)
    except (CommandNotFoundError, CommandTimeoutError) as exc:
        logger.warning("ssh-keyscan unavailable for %s: %s", host, exc)
        return False
    if not result.ok or not result.stdout:
        logger.warning("ssh-keyscan returned nothing for %s", host)
        return False

    os.makedirs(os.path.dirname(known_hosts) or ".", mode=0o700, exist_ok=True)
    async with aiofiles.open(known_hosts, "a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            await f.write("\n")
        await f.write(result.stdout + "\n")
    logger.info("added %s to %s", host, known_hosts)
    return True


async def add_to_agent(private_key: str) -> bool:
    """Load ``private_key`` into the running ssh-agent."""
    if not os.environ.get("SSH_AUTH_SOCK"):
        logger.debug("no ssh-agent socket, skipping ssh-add")
        return False
    try:
        result = await run_command(["ssh-add", private_key], timeout=15)
    except (CommandNotFoundError, CommandTimeoutError) as exc:
        logger.debug("ssh-add unavailable: %s", exc)
        return False
    if not result.ok:
        logger.debug("ssh-add %s failed: %s", private_key, result.stderr)
    return result.ok


async def remove_from_agent(private_key: str) -> bool:
    """Drop a stale key from the agent. Best-effort."""
    if not os.environ.get("SSH_AUTH_SOCK"):
        return False
    try:
        result = await run_command(["ssh-add", "-d", private_key], timeout=15)
    except (CommandNotFoundError, CommandTimeoutError) as exc:
        logger.debug("ssh-add -d unavailable: %s", exc)
        return False
    return result.ok
