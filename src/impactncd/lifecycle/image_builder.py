"""Build the session image, with the prerequisite-image fallback."""

from __future__ import annotations

import logging
import shlex

from impactncd.container.cli import DockerCli
from impactncd.container.engine import DockerEngine
from impactncd.remote.gateway import SshGateway
from impactncd.shared.exceptions import ImageBuildError, SshTransportError
from impactncd.shared.models import BuildInfo
from impactncd.shared.process import CommandResult

logger = logging.getLogger(__name__)


def prerequisite_image_name(image: str) -> str:
    return f"{image}-prerequisite"


class ImageBuilder:
    """Builds from the repository's Dockerfiles on whichever host holds the repo.

    Remote builds run ``docker build`` on the workstation over SSH so the build
    context never crosses the network.
    """

    def __init__(
        self,
        cli: DockerCli,
        engine: DockerEngine,
        *,
        dockerfile: str,
        prerequisite_dockerfile: str,
        gateway: SshGateway | None = None,
        build_timeout: int = 3600,
    ) -> None:
        self._cli = cli
        self._engine = engine
        self._dockerfile = dockerfile
        self._prerequisite_dockerfile = prerequisite_dockerfile
        self._gateway = gateway
        self._build_timeout = build_timeout

    async def ensure_image(self, image: str, repo_root: str, *, rebuild: bool = False) -> BuildInfo:
        """Build ``image`` if it is missing or ``rebuild`` is set.

        On failure the prerequisite image is built and the main build retried once.

        Raises:
            ImageBuildError: If the prerequisite build or the retry fails.
        """
        if not rebuild and await self._engine.image_exists(image):
            logger.info("image %s present, skipping build", image)
            return BuildInfo(image=image)

        first = await self._build(self._dockerfile, image, repo_root)
        if first.ok:
            return BuildInfo(image=image, built=True)

        logger.warning("build of %s failed (rc=%d), building prerequisite image first", image, first.returncode)
        prereq = await self._build(self._prerequisite_dockerfile, prerequisite_image_name(image), repo_root)
        if not prereq.ok:
            raise ImageBuildError(f"prerequisite image build failed (rc={prereq.returncode})", output=prereq.output)

        retry = await self._build(self._dockerfile, image, repo_root)
        if not retry.ok:
            raise ImageBuildError(f"image build failed after prerequisite (rc={retry.returncode})", output=retry.output)
        return BuildInfo(image=image, built=True, used_prerequisite=True)

    async def _build(self, dockerfile: str, tag: str, repo_root: str) -> CommandResult:
        if self._gateway is None:
            return await self._cli.build(dockerfile, tag, ".", cwd=repo_root)

        command = (
            f"cd {shlex.quote(repo_root)} && "
            f"docker build -f {shlex.quote(dockerfile)} -t {shlex.quote(tag)} ."
        )
        logger.info("building image %s on %s (this can take a while)", tag, self._gateway.target.ip)
        try:
            return await self._gateway.run(command, timeout=self._build_timeout)
        except SshTransportError as exc:
            raise ImageBuildError(f"remote build of {tag} interrupted: {exc}") from exc
