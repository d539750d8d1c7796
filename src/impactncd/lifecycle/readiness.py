"""Bounded polling for the Docker daemon and the RStudio web server."""

from __future__ import annotations

import asyncio
import logging
import os

import httpx

from impactncd.container.cli import DockerCli
from impactncd.shared.exceptions import DockerUnavailableError

logger = logging.getLogger(__name__)


async def wait_for_docker(
    cli: DockerCli,
    *,
    timeout: int = 30,
    poll_interval: float = 1.0,
    launch_path: str = "",
) -> str:
    """Wait until the engine answers ``docker version``.

    Args:
        cli: CLI bound to the target endpoint.
        timeout: Seconds to keep polling after the first failure.
        poll_interval: Seconds between attempts.
        launch_path: Docker Desktop executable started once if the daemon is down.

    Returns:
        Server version string.

    Raises:
        DockerUnavailableError: If the daemon is still unreachable after ``timeout``.
    """
    version = await cli.server_version()
    if version:
        return version

    if launch_path and cli.endpoint.is_local and os.path.exists(launch_path):
        logger.info("docker daemon not reachable, launching %s", launch_path)
        await asyncio.create_subprocess_exec(
            launch_path, stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.DEVNULL
        )

    elapsed = 0.0
    while elapsed < timeout:
        await asyncio.sleep(poll_interval)
        elapsed += poll_interval
        version = await cli.server_version()
        if version:
            logger.info("docker daemon ready after %.0fs (server %s)", elapsed, version)
            return version

    raise DockerUnavailableError(f"docker daemon not reachable after {timeout}s")


async def wait_for_rstudio(url: str, *, attempts: int = 60, poll_interval: float = 2.0) -> bool:
    """Poll ``url`` until RStudio Server answers.

    Returns:
        True once any non-5xx response arrives, False after ``attempts`` tries.
    """
    async with httpx.AsyncClient(timeout=5, follow_redirects=False) as client:
        for attempt in range(1, attempts + 1):
            try:
                resp = await client.get(url)
                if resp.status_code < 500:
                    logger.info("rstudio answered at %s after %d attempt(s)", url, attempt)
                    return True
            except httpx.HTTPError as exc:
                logger.debug("waiting for %s: %s", url, exc)
            await asyncio.sleep(poll_interval)

    logger.warning("rstudio at %s did not respond after %d attempts", url, attempts)
    return False
