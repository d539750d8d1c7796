"""Async subprocess primitive shared by the docker, ssh and git wrappers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from impactncd.shared.exceptions import CommandNotFoundError, CommandTimeoutError

logger = logging.getLogger(__name__)


def redact(args: Sequence[str]) -> list[str]:
    """Mask ``PASSWORD=`` assignments before an argument vector is logged."""
    return ["PASSWORD=***" if a.startswith("PASSWORD=") else a for a in args]


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured outcome of one external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


async def run_command(
    args: Sequence[str],
    *,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
) -> CommandResult:
    """Run a command and return its captured output.

    Args:
        args: Program followed by its arguments. No shell is involved.
        timeout: Seconds before the process is killed.
        env: Complete environment for the child, or None to inherit.
        cwd: Working directory for the child.
        input_text: Text written to stdin.

    Returns:
        CommandResult with decoded, stripped stdout/stderr.

    Raises:
        CommandNotFoundError: If the program is not installed.
        CommandTimeoutError: If the command exceeded ``timeout``.
    """
    cmd = [str(a) for a in args]
    logger.debug("exec: %s", " ".join(redact(cmd)))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
            cwd=cwd,
        )
    except FileNotFoundError as exc:
        raise CommandNotFoundError(f"{cmd[0]} binary not found") from exc

    try:
        stdout_b, stderr_b = await asyncio.wait_for(
            proc.communicate(input_text.encode() if input_text is not None else None),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise CommandTimeoutError(f"{cmd[0]} timed out after {timeout}s") from exc

    result = CommandResult(
        args=tuple(cmd),
        returncode=proc.returncode if proc.returncode is not None else 0,
        stdout=(stdout_b or b"").decode(errors="replace").strip(),
        stderr=(stderr_b or b"").decode(errors="replace").strip(),
    )
    logger.debug("exit %d: %s", result.returncode, cmd[0])
    return result
