"""Synchronisation between named volumes and host directories via an rsync helper image."""

from __future__ import annotations

import logging

from impactncd.container.command_builder import RSTUDIO_GID, RSTUDIO_UID
from impactncd.container.engine import DockerEngine

logger = logging.getLogger(__name__)

RSYNC_DOCKERFILE = "FROM alpine:3.20\nRUN apk add --no-cache rsync\n"

# Container-side ownership and modes are discarded so the host directory stays host-owned.
SYNC_BACK_FLAGS = ("-a", "--no-owner", "--no-group", "--no-perms", "--chmod=ugo=rwX")

_SOURCE = "/source"
_TARGET = "/target"


class VolumeSynchronizer:
    def __init__(self, engine: DockerEngine, *, rsync_image: str = "impactncd-rsync:latest") -> None:
        self._engine = engine
        self._image = rsync_image

    async def ensure_helper_image(self) -> bool:
        """Build the rsync helper image if missing. Returns True if it was built."""
        if await self._engine.image_exists(self._image):
            return False
        logger.info("rsync helper image %s missing, building it", self._image)
        await self._engine.build_inline(self._image, RSYNC_DOCKERFILE)
        return True

    async def populate(self, volume: str, host_dir: str) -> None:
        """Create ``volume``, hand it to the RStudio user and copy ``host_dir`` into it.

        Args:
            volume: Named volume.
            host_dir: Mount-ready host directory.

        Raises:
            VolumeSyncError: If creating or filling the volume fails.
        """
        await self._engine.create_volume(volume)
        script = f"rsync -a {_SOURCE}/ {_TARGET}/ && chown -R {RSTUDIO_UID}:{RSTUDIO_GID} {_TARGET}"
        await self._engine.run_helper(
            self._image,
            ["sh", "-c", script],
            {host_dir: {"bind": _SOURCE, "mode": "ro"}, volume: {"bind": _TARGET, "mode": "rw"}},
        )
        logger.info("populated volume %s from %s", volume, host_dir)

    async def sync_back(self, volume: str, host_dir: str) -> None:
        """Copy the contents of ``volume`` back into ``host_dir``.

        Raises:
            VolumeSyncError: If rsync fails.
        """
        await self._engine.run_helper(
            self._image,
            ["rsync", *SYNC_BACK_FLAGS, f"{_SOURCE}/", f"{_TARGET}/"],
            {volume: {"bind": _SOURCE, "mode": "ro"}, host_dir: {"bind": _TARGET, "mode": "rw"}},
        )
        logger.info("synced volume %s back to %s", volume, host_dir)

    async def remove(self, volume: str) -> bool:
        return await self._engine.remove_volume(volume)
