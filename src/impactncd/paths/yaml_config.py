"""Path values from the simulation-design YAML file.

The file is scanned line by line instead of being parsed: only two top-level
scalar keys matter and the same text may arrive from ``cat`` over SSH.
"""

from __future__ import annotations

import re

OUTPUT_DIR_KEY = "output_dir"
SYNTHPOP_DIR_KEY = "synthpop_dir"

_ABSOLUTE_RE = re.compile(r"^(/|\\\\|[A-Za-z]:[\\/])")
# Leaves a URL scheme separator ("://") intact.
_DUPLICATE_SLASH_RE = re.compile(r"(?<!:)/{2,}")


def read_path_value(yaml_text: str | None, key: str, base_dir: str) -> str | None:
    """Return the path stored under ``key``, resolved against ``base_dir``.

    Args:
        yaml_text: Raw file content, or None when the file could not be read.
        key: Top-level key such as ``output_dir``.
        base_dir: Directory relative values are joined to (the repo root).

    Returns:
        Absolute values verbatim (backslashes turned into slashes), relative
        values joined to ``base_dir``, or None if the key is absent or empty.
    """
    if not yaml_text:
        return None

    pattern = re.compile(rf"^{re.escape(key)}\s*:")
    for line in yaml_text.splitlines():
        if not pattern.match(line):
            continue
        value = line.split(":", 1)[1].split("#", 1)[0].strip().strip("'\"").strip()
        if not value:
            return None
        if is_absolute(value):
            return value.replace("\\", "/")
        return join_path(base_dir, value)
    return None


def is_absolute(value: str) -> bool:
    return bool(_ABSOLUTE_RE.match(value))


def join_path(base_dir: str, relative: str) -> str:
    rel = relative.replace("\\", "/")
    while rel.startswith("./"):
        rel = rel[2:]
    base = base_dir.replace("\\", "/").rstrip("/")
    joined = _DUPLICATE_SLASH_RE.sub("/", f"{base}/{rel}")
    return joined.rstrip("/") if len(joined) > 1 else joined
