"""Container inspection and housekeeping using the Docker SDK."""

from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import Callable
from functools import partial
from typing import Any, TypeVar, cast

from docker.errors import APIError, BuildError, ContainerError, DockerException, ImageNotFound, NotFound

import docker
from impactncd.container.command_builder import RSTUDIO_PORT
from impactncd.container.endpoint import DockerEndpoint
from impactncd.shared.enums import RecoverySource
from impactncd.shared.exceptions import DockerUnavailableError, ImageBuildError, VolumeSyncError
from impactncd.shared.models import ContainerInfo, RecoveredRuntimeInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DockerEngine:
    """Docker SDK access for one endpoint.

    Blocking SDK calls run in the default executor, one at a time.
    """

    def __init__(self, endpoint: DockerEndpoint, *, timeout: int = 120) -> None:
        self.endpoint = endpoint
        self._timeout = timeout
        self._docker: Any | None = None

    def _client(self) -> Any:
        if self._docker is None:
            try:
                if self.endpoint.ssh_url:
                    self._docker = cast(Any, docker).DockerClient(
                        base_url=self.endpoint.ssh_url, use_ssh_client=True, timeout=self._timeout
                    )
                else:
                    self._docker = cast(Any, docker).from_env(timeout=self._timeout)
            except DockerException as exc:
                raise DockerUnavailableError(f"cannot reach docker engine: {exc}") from exc
        return self._docker

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    async def list_user_containers(self, user_name: str) -> list[ContainerInfo]:
        """All containers (any state) whose name contains ``_<user_name>``."""
        try:
            containers = await self._call(self._client().containers.list, all=True, filters={"name": f"_{user_name}"})
        except APIError as exc:
            raise DockerUnavailableError(f"docker ps failed: {exc}") from exc

        inventory = [
            ContainerInfo(
                name=c.name,
                status=c.status,
                image=_image_label(c),
                ports=_host_ports(c.attrs),
            )
            for c in containers
        ]
        logger.debug("inventory for %s: %s", user_name, [(i.name, i.status) for i in inventory])
        return inventory

    async def inspect_runtime(self, name: str) -> RecoveredRuntimeInfo | None:
        """Recover password, port and volume usage from a live container."""
        try:
            container = await self._call(self._client().containers.get, name)
        except NotFound:
            return None
        except APIError as exc:
            logger.warning("docker inspect %s failed: %s", name, exc)
            return None

        attrs = container.attrs
        password = None
        for item in attrs.get("Config", {}).get("Env") or []:
            if item.startswith("PASSWORD="):
                password = item.split("=", 1)[1]
                break
        bindings = (attrs.get("NetworkSettings", {}).get("Ports") or {}).get(f"{RSTUDIO_PORT}/tcp") or []
        port = None
        if bindings and bindings[0].get("HostPort"):
            port = int(bindings[0]["HostPort"])
        use_volumes = any(m.get("Type") == "volume" for m in attrs.get("Mounts") or [])
        return RecoveredRuntimeInfo(
            password=password, port=port, use_volumes=use_volumes, source=RecoverySource.INSPECT
        )

    async def stop(self, name: str, *, timeout: int = 30) -> bool:
        try:
            container = await self._call(self._client().containers.get, name)
            await self._call(container.stop, timeout=timeout)
        except NotFound:
            logger.warning("container %s already gone", name)
            return False
        except APIError as exc:
            raise DockerUnavailableError(f"failed to stop {name}: {exc}") from exc
        logger.info("stopped container %s", name)
        return True

    async def exec(
        self, name: str, command: list[str], *, user: str = "root", env: dict[str, str] | None = None
    ) -> tuple[int, str]:
        """Run ``command`` inside ``name``; returns (exit code, output), exit code -1 if docker failed."""
        try:
            container = await self._call(self._client().containers.get, name)
            result = await self._call(container.exec_run, command, user=user, environment=env)
        except APIError as exc:
            logger.warning("docker exec in %s failed: %s", name, exc)
            return -1, str(exc)
        output = result.output.decode(errors="replace") if result.output else ""
        return result.exit_code, output.strip()

    async def image_exists(self, tag: str) -> bool:
        try:
            await self._call(self._client().images.get, tag)
        except ImageNotFound:
            return False
        except APIError as exc:
            raise DockerUnavailableError(f"docker images failed: {exc}") from exc
        return True

    async def build_inline(self, tag: str, dockerfile: str) -> None:
        """Build ``tag`` from an in-memory Dockerfile with no build context."""
        try:
            await self._call(self._client().images.build, fileobj=io.BytesIO(dockerfile.encode()), tag=tag, rm=True)
        except (BuildError, APIError) as exc:
            raise ImageBuildError(f"failed to build {tag}: {exc}") from exc
        logger.info("built helper image %s", tag)

    async def create_volume(self, name: str) -> None:
        try:
            await self._call(self._client().volumes.create, name=name)
        except APIError as exc:
            raise VolumeSyncError(f"cannot create volume {name}: {exc}") from exc

    async def remove_volume(self, name: str) -> bool:
        try:
            volume = await self._call(self._client().volumes.get, name)
            await self._call(volume.remove, force=True)
        except NotFound:
            return False
        except APIError as exc:
            logger.warning("cannot remove volume %s: %s", name, exc)
            return False
        logger.info("removed volume %s", name)
        return True

    async def run_helper(self, image: str, command: list[str], volumes: dict[str, dict[str, str]]) -> str:
        """Run a throwaway container to completion and return its logs.

        Raises:
            VolumeSyncError: If the command exits non-zero or docker fails.
        """
        try:
            logs = await self._call(self._client().containers.run, image, command=command, volumes=volumes, remove=True)
        except ContainerError as exc:
            raise VolumeSyncError(f"helper container failed (rc={exc.exit_status}): {exc.stderr!r}") from exc
        except APIError as exc:
            raise VolumeSyncError(f"helper container could not run: {exc}") from exc
        return logs.decode(errors="replace") if isinstance(logs, bytes) else str(logs or "")


def _image_label(container: Any) -> str:
    try:
        tags = container.image.tags
    except (NotFound, APIError):
        tags = []
    return tags[0] if tags else container.attrs.get("Config", {}).get("Image", "")


def _host_ports(attrs: dict[str, Any]) -> tuple[int, ...]:
    ports: set[int] = set()
    for bindings in (attrs.get("NetworkSettings", {}).get("Ports") or {}).values():
        for binding in bindings or []:
            host_port = binding.get("HostPort")
            if host_port:
                ports.add(int(host_port))
    return tuple(sorted(ports))
