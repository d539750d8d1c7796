"""Host path → Docker mount source conversion."""

from __future__ import annotations

import re

_DRIVE_RE = re.compile(r"^([A-Za-z]):(?:/(.*))?$")
_REPEATED_SLASH_RE = re.compile(r"/{2,}")


def to_docker_mount_path(path: str, is_local: bool) -> str:
    """Convert a host path into the form Docker accepts as a bind-mount source.

    Local Windows drive paths become Docker Desktop style
    (``C:\\Users\\x`` → ``/c/Users/x``). Everything else only gets its
    separators normalised, since remote paths are already POSIX.

    Args:
        path: Host filesystem path.
        is_local: True when the Docker engine runs on this machine.

    Returns:
        Slash-normalised path without repeated or trailing separators.
    """
    normalized = path.replace("\\", "/")
    if is_local:
        match = _DRIVE_RE.match(normalized)
        if match:
            drive, rest = match.groups()
            normalized = f"/{drive.lower()}/{rest or ''}"
    return collapse_slashes(normalized)


def collapse_slashes(path: str) -> str:
    collapsed = _REPEATED_SLASH_RE.sub("/", path)
    if len(collapsed) > 1:
        collapsed = collapsed.rstrip("/")
    return collapsed
