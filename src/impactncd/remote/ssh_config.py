"""Management of ``Host`` entries in the user's OpenSSH client config."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass

import aiofiles  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

MARKER_PREFIX = "# impactncd auto-generated entry"


@dataclass(frozen=True, slots=True)
class HostEntry:
    host: str
    hostname: str
    user: str
    identity_file: str
    owner: str

    @property
    def marker(self) -> str:
        return f"{MARKER_PREFIX} for {self.owner}"

    def render(self) -> list[str]:
        return [
            self.marker,
            f"Host {self.host}",
            f"    HostName {self.hostname}",
            f"    User {self.user}",
            f"    IdentityFile {self.identity_file}",
            "    IdentitiesOnly yes",
        ]


@dataclass(frozen=True, slots=True)
class _Block:
    start: int
    end: int
    patterns: tuple[str, ...]
    options: dict[str, str]


def _keyword(line: str) -> tuple[str, str]:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return "", ""
    parts = stripped.replace("=", " ", 1).split(None, 1)
    return parts[0].lower(), (parts[1].strip() if len(parts) > 1 else "")


def _parse_blocks(lines: list[str]) -> list[_Block]:
    heads = [i for i, line in enumerate(lines) if _keyword(line)[0] in ("host", "match")]
    blocks: list[_Block] = []
    for n, start in enumerate(heads):
        end = heads[n + 1] if n + 1 < len(heads) else len(lines)
        # Comments and blank lines right before the next header belong to it.
        while end > start + 1 and (not lines[end - 1].strip() or lines[end - 1].lstrip().startswith("#")):
            end -= 1
        keyword, value = _keyword(lines[start])
        options: dict[str, str] = {}
        for line in lines[start + 1 : end]:
            key, val = _keyword(line)
            if key:
                options.setdefault(key, val)
        patterns = tuple(value.split()) if keyword == "host" else ()
        blocks.append(_Block(start=start, end=end, patterns=patterns, options=options))
    return blocks


def _norm_path(path: str) -> str:
    return os.path.normcase(os.path.expanduser(path.strip('"')))


def _same_path(a: str, b: str) -> bool:
    return _norm_path(a) == _norm_path(b)


def ensure_host_entry_text(
    text: str,
    entry: HostEntry,
    *,
    exists: Callable[[str], bool] = os.path.exists,
) -> tuple[str, bool]:
    """Return config text containing exactly one current block for ``entry.host``.

    A matching block is kept only if it already points at ``entry.identity_file``
    and that file exists. Otherwise every block for the host is removed together
    with its auto-generated marker comment, and a fresh block is appended.

    Returns:
        The new text and whether it differs from ``text``.
    """
    lines = text.splitlines()
    matching = [b for b in _parse_blocks(lines) if entry.host in b.patterns]

    if len(matching) == 1:
        identity = matching[0].options.get("identityfile", "")
        user = matching[0].options.get("user", "")
        if identity and _same_path(identity, entry.identity_file) and exists(os.path.expanduser(identity)):
            if not user or user == entry.user:
                return text, False

    drop: set[int] = set()
    for block in matching:
        drop.update(range(block.start, block.end))
        prev = block.start - 1
        if prev >= 0 and lines[prev].strip().startswith(MARKER_PREFIX):
            drop.add(prev)
    kept = [line for i, line in enumerate(lines) if i not in drop]

    while kept and not kept[-1].strip():
        kept.pop()
    if kept:
        kept.append("")
    kept.extend(entry.render())
    if matching:
        logger.info("replacing stale ssh config entry for %s", entry.host)
    return "\n".join(kept) + "\n", True


async def ensure_ssh_config_entry(config_path: str, entry: HostEntry) -> bool:
    """Ensure ``config_path`` holds a current block for ``entry``.

    The file is rewritten atomically (temporary file + rename) and only when it
    changes.

    Returns:
        True if the file was modified.
    """
    text = ""
    if os.path.exists(config_path):
        async with aiofiles.open(config_path, "r", encoding="utf-8") as f:
            text = await f.read()

    new_text, changed = ensure_host_entry_text(text, entry)
    if not changed:
        logger.debug("ssh config entry for %s is current", entry.host)
        return False

    directory = os.path.dirname(config_path) or "."
    os.makedirs(directory, mode=0o700, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".config.", dir=directory)
    os.close(fd)
    try:
        async with aiofiles.open(tmp_path, "w", encoding="utf-8", newline="\n") as f:
            await f.write(new_text)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, config_path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.info("wrote ssh config entry for %s to %s", entry.host, config_path)
    return True
