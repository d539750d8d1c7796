"""Docker CLI wrapper for the calls whose command line is the contract."""

from __future__ import annotations

import logging

from impactncd.container.endpoint import DockerEndpoint
from impactncd.shared.exceptions import CommandTimeoutError, ContainerStartError
from impactncd.shared.process import CommandResult, run_command

logger = logging.getLogger(__name__)


class DockerCli:
    """Runs ``docker`` against one endpoint.

    Uses the ``docker`` CLI through async subprocess calls; context selection
    and ``DOCKER_HOST`` come from the endpoint.
    """

    def __init__(
        self,
        endpoint: DockerEndpoint,
        *,
        docker_bin: str = "docker",
        timeout: int = 120,
        build_timeout: int = 3600,
    ) -> None:
        self.endpoint = endpoint
        self._docker_bin = docker_bin
        self._timeout = timeout
        self._build_timeout = build_timeout

    async def _run(self, *args: str, timeout: int | None = None, cwd: str | None = None) -> CommandResult:
        cmd = [self._docker_bin, *self.endpoint.cli_prefix(), *args]
        return await run_command(cmd, timeout=timeout or self._timeout, env=self.endpoint.cli_env(), cwd=cwd)

    async def run_container(self, run_args: list[str]) -> str:
        """Execute ``docker <run_args>`` and return the new container id.

        Raises:
            ContainerStartError: If docker exits non-zero.
        """
        result = await self._run(*run_args)
        if not result.ok:
            raise ContainerStartError(f"docker run failed (rc={result.returncode})", output=result.output)
        container_id = result.stdout.splitlines()[-1] if result.stdout else ""
        logger.info("started container %s", container_id[:12])
        return container_id

    async def build(
        self, dockerfile: str, tag: str, context_dir: str = ".", *, cwd: str | None = None
    ) -> CommandResult:
        """Run ``docker build``; the caller decides what a failure means."""
        logger.info("building image %s from %s (this can take a while)", tag, dockerfile)
        try:
            return await self._run(
                "build", "-f", dockerfile, "-t", tag, context_dir, timeout=self._build_timeout, cwd=cwd
            )
        except CommandTimeoutError as exc:
            return CommandResult(args=("docker", "build"), returncode=-1, stdout="", stderr=str(exc))

    async def server_version(self) -> str | None:
        """Return the engine version, or None if the daemon is unreachable."""
        try:
            result = await self._run("version", "--format", "{{.Server.Version}}", timeout=15)
        except CommandTimeoutError:
            return None
        if not result.ok or not result.stdout:
            return None
        return result.stdout

    async def ensure_context(self, name: str, host_url: str) -> bool:
        """Create the SSH-backed context ``name`` unless it already exists."""
        env = self.endpoint.cli_env()
        inspect = await run_command([self._docker_bin, "context", "inspect", name], timeout=self._timeout, env=env)
        if inspect.ok:
            return False
        created = await run_command(
            [self._docker_bin, "context", "create", name, "--docker", f"host={host_url}"],
            timeout=self._timeout,
            env=env,
        )
        if not created.ok:
            raise ContainerStartError(f"cannot create docker context {name}", output=created.output)
        logger.info("created docker context %s -> %s", name, host_url)
        return True

    async def remove_context(self, name: str) -> bool:
        result = await run_command(
            [self._docker_bin, "context", "rm", "-f", name], timeout=self._timeout, env=self.endpoint.cli_env()
        )
        return result.ok
