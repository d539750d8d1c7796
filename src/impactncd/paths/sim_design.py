"""Locate sim_design YAML files and resolve the directories they declare."""

from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass

import aiofiles  # type: ignore[import-untyped]

from impactncd.paths.interfaces import HostFiles
from impactncd.paths.yaml_config import OUTPUT_DIR_KEY, SYNTHPOP_DIR_KEY, read_path_value

logger = logging.getLogger(__name__)

# Machine-specific overrides win over the committed design file.
SIM_DESIGN_CANDIDATES = (
    "inputs/sim_design.local.yaml",
    "inputs/sim_design.yaml",
    "sim_design.local.yaml",
    "sim_design.yaml",
)


@dataclass(frozen=True, slots=True)
class SimDesignPaths:
    source: str
    output_dir: str | None
    synthpop_dir: str | None


class LocalFiles:
    """``HostFiles`` implementation for the local machine."""

    async def read_file(self, path: str) -> str | None:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return await f.read()
        except OSError as exc:
            logger.debug("cannot read %s: %s", path, exc)
            return None

    async def path_exists(self, path: str) -> bool:
        return os.path.isfile(path)

    async def directory_exists(self, path: str) -> bool:
        return os.path.isdir(path)


async def load_sim_design_paths(repo_root: str, files: HostFiles) -> SimDesignPaths | None:
    """Read the first sim_design file found under ``repo_root``.

    Args:
        repo_root: Repository root on the Docker host; relative values resolve against it.
        files: Local or SSH-backed file access.

    Returns:
        Resolved directories, or None when no design file could be read.
    """
    root = repo_root.replace("\\", "/").rstrip("/")
    for candidate in SIM_DESIGN_CANDIDATES:
        path = posixpath.join(root, candidate)
        text = await files.read_file(path)
        if text is None:
            continue
        result = SimDesignPaths(
            source=path,
            output_dir=read_path_value(text, OUTPUT_DIR_KEY, repo_root),
            synthpop_dir=read_path_value(text, SYNTHPOP_DIR_KEY, repo_root),
        )
        logger.info(
            "sim design %s: output_dir=%s synthpop_dir=%s",
            path,
            result.output_dir,
            result.synthpop_dir,
        )
        return result

    logger.warning("no sim_design yaml found under %s", repo_root)
    return None
