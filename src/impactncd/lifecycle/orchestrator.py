"""Session container lifecycle: status, start and stop."""

from __future__ import annotations

import logging

from impactncd.config import Settings
from impactncd.container.cli import DockerCli
from impactncd.container.command_builder import (
    KNOWN_HOSTS_MOUNT,
    RSTUDIO_HOME,
    build_run_args,
    container_key_path,
    image_name,
    mounted_key_path,
    volume_names,
)
from impactncd.container.engine import DockerEngine
from impactncd.container.volumes import VolumeSynchronizer
from impactncd.gitops.notifier import GitChangeNotifier
from impactncd.gitops.repository import GitRepository
from impactncd.lifecycle.image_builder import ImageBuilder
from impactncd.lifecycle.readiness import wait_for_docker, wait_for_rstudio
from impactncd.paths.interfaces import HostFiles
from impactncd.paths.sim_design import load_sim_design_paths
from impactncd.paths.translator import to_docker_mount_path
from impactncd.remote.gateway import SshGateway
from impactncd.shared.enums import ContainerState, RecoverySource
from impactncd.shared.exceptions import GitError, PreconditionError
from impactncd.shared.models import (
    ActiveSession,
    RecoveredRuntimeInfo,
    RunMetadata,
    RunOptions,
    SessionState,
    StatusReport,
)
from impactncd.shared.process import redact

logger = logging.getLogger(__name__)


class ContainerLifecycleOrchestrator:
    """Reconcile the user's session container with the requested state.

    Collaborators are bound to one location: ``files`` and ``gateway`` point at
    the Docker host, and ``gateway`` is None for local sessions so nothing here
    can reach SSH in local mode.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        cli: DockerCli,
        engine: DockerEngine,
        volumes: VolumeSynchronizer,
        builder: ImageBuilder,
        files: HostFiles,
        gateway: SshGateway | None = None,
        notifier: GitChangeNotifier | None = None,
        wait_for_web: bool = False,
    ) -> None:
        self._settings = settings
        self._cli = cli
        self._engine = engine
        self._volumes = volumes
        self._builder = builder
        self._files = files
        self._gateway = gateway
        self._notifier = notifier
        self._wait_for_web = wait_for_web

    # ── status ──────────────────────────────────────────────────

    async def detect_status(self, state: SessionState) -> StatusReport:
        """Inventory the user's containers and recover details of a running target."""
        containers = await self._engine.list_user_containers(state.user_name)
        target = next((c for c in containers if c.name == state.container_name), None)
        if target is None or not target.running:
            return StatusReport(state=ContainerState.STOPPED, containers=tuple(containers))

        recovered = await self.recover_runtime(state)
        return StatusReport(state=ContainerState.RUNNING, containers=tuple(containers), recovered=recovered)

    async def recover_runtime(self, state: SessionState) -> RecoveredRuntimeInfo | None:
        if self._gateway is not None:
            metadata = await self._gateway.read_metadata(state.container_name)
            if metadata is not None:
                logger.info("recovered %s from run metadata", state.container_name)
                return RecoveredRuntimeInfo(
                    password=metadata.password,
                    port=metadata.port,
                    use_volumes=metadata.use_volumes,
                    source=RecoverySource.METADATA,
                )
            logger.info("no run metadata for %s, inspecting container", state.container_name)
        return await self._engine.inspect_runtime(state.container_name)

    def session_url(self, state: SessionState, port: int | None = None) -> str:
        remote = state.remote
        host = remote.ip if remote is not None else "localhost"
        return f"http://{host}:{port or state.port}"

    # ── start ───────────────────────────────────────────────────

    async def start(self, state: SessionState, options: RunOptions | None = None) -> ActiveSession:
        """Start the session container.

        Raises:
            PreconditionError: Already running, port taken, missing key material or directories.
            ImageBuildError: If the image cannot be built.
            ContainerStartError: If ``docker run`` fails.
            VolumeSyncError: If named volumes cannot be prepared.
        """
        if not state.password:
            raise PreconditionError("a password is required to start a container")

        report = await self.detect_status(state)
        if report.state is ContainerState.RUNNING:
            raise PreconditionError(f"container {state.container_name} is already running")
        if state.port in report.used_ports:
            raise PreconditionError(f"port {state.port} is already used by another of your containers")
        if state.is_remote:
            await self._check_remote_key_material(state)

        await self._ensure_endpoint()
        state = await self.resolve_data_dirs(state)
        await self._check_directories(state)

        options = options or RunOptions(image=image_name(state.selected_repo))
        build = await self._builder.ensure_image(options.image, state.paths.repo_root, rebuild=state.flags.rebuild)
        baseline = await self._repository(state).baseline()

        if state.flags.use_volumes:
            await self._prepare_volumes(state)

        args = build_run_args(
            state,
            options,
            high_compute_cpus=self._settings.high_compute_cpus,
            high_compute_memory=self._settings.high_compute_memory,
        )
        logger.info("docker %s", " ".join(redact(args)))
        await self._cli.run_container(args)
        await self._post_start(state)

        if self._gateway is not None:
            written = await self._gateway.write_metadata(
                RunMetadata(
                    container=state.container_name,
                    repo=state.selected_repo,
                    user=state.user_name,
                    password=state.password,
                    port=state.port,
                    use_volumes=state.flags.use_volumes,
                )
            )
            if not written:
                logger.warning("run metadata not saved; reconnect will fall back to inspection")

        url = self.session_url(state)
        if self._wait_for_web:
            await wait_for_rstudio(
                url,
                attempts=self._settings.web_ready_attempts,
                poll_interval=self._settings.web_ready_interval_seconds,
            )
        return ActiveSession(
            container_name=state.container_name,
            repo_path=state.paths.repo_root,
            is_remote=state.is_remote,
            port=state.port,
            use_volumes=state.flags.use_volumes,
            url=url,
            baseline=baseline,
            build=build,
        )

    async def resolve_data_dirs(self, state: SessionState) -> SessionState:
        """Fill output/synthpop directories from sim_design unless already set."""
        if state.paths.output_dir and state.paths.synthpop_dir:
            return state
        design = await load_sim_design_paths(state.paths.repo_root, self._files)
        if design is None:
            raise PreconditionError(f"no sim_design yaml found in {state.paths.repo_root}")
        if not design.output_dir or not design.synthpop_dir:
            raise PreconditionError(f"{design.source} must define both output_dir and synthpop_dir")
        paths = state.paths.model_copy(update={"output_dir": design.output_dir, "synthpop_dir": design.synthpop_dir})
        return state.model_copy(update={"paths": paths})

    async def _check_directories(self, state: SessionState) -> None:
        # Missing directories are never created: output must not land in a fresh empty folder.
        for label, path in (("output_dir", state.paths.output_dir), ("synthpop_dir", state.paths.synthpop_dir)):
            if not path:
                raise PreconditionError(f"{label} is not set for {state.container_name}")
            if not state.is_remote and self._settings.windows_host and path.startswith("/"):
                raise PreconditionError(f"{label} {path} is a POSIX path; local sessions need a Windows path")
            if not await self._files.directory_exists(path):
                raise PreconditionError(f"{label} does not exist: {path}. Create it or correct sim_design.yaml")

    async def _check_remote_key_material(self, state: SessionState) -> None:
        for path in (state.paths.container_key_source, state.paths.known_hosts_source):
            if not await self._files.path_exists(path):
                raise PreconditionError(f"required ssh file missing on remote host: {path}")

    async def _ensure_endpoint(self) -> None:
        endpoint = self._cli.endpoint
        if endpoint.context and endpoint.ssh_url:
            await self._cli.ensure_context(endpoint.context, endpoint.ssh_url)
        await wait_for_docker(
            self._cli,
            timeout=self._settings.docker_ready_timeout_seconds,
            launch_path=self._settings.docker_desktop_path,
        )

    async def _prepare_volumes(self, state: SessionState) -> None:
        await self._volumes.ensure_helper_image()
        for volume, host_dir in self._volume_pairs(state):
            await self._volumes.populate(volume, host_dir)

    def _volume_pairs(self, state: SessionState) -> list[tuple[str, str]]:
        dirs = (state.paths.output_dir or "", state.paths.synthpop_dir or "")
        return [
            (volume, to_docker_mount_path(host_dir, not state.is_remote))
            for volume, host_dir in zip(volume_names(state.user_name), dirs)
        ]

    async def _post_start(self, state: SessionState) -> None:
        name = state.container_name
        ssh_dir = f"{RSTUDIO_HOME}/.ssh"
        key = container_key_path(state.user_name)
        script = (
            f"mkdir -p {ssh_dir} && cp {mounted_key_path(state.user_name)} {key} && "
            f"cp {KNOWN_HOSTS_MOUNT} {ssh_dir}/known_hosts && "
            f"chown -R $(id -u rstudio):$(id -g rstudio) {ssh_dir} && chmod 700 {ssh_dir} && chmod 600 {key}"
        )
        rc, output = await self._engine.exec(name, ["sh", "-c", script])
        if rc != 0:
            logger.warning("could not install ssh key in %s (rc=%d): %s", name, rc, output)

        git_env = {"HOME": RSTUDIO_HOME}
        for command in (
            ["git", "config", "--global", "pull.rebase", "false"],
            ["git", "config", "--global", "--add", "safe.directory", "*"],
        ):
            rc, output = await self._engine.exec(name, command, user="rstudio", env=git_env)
            if rc != 0:
                logger.warning("%s failed in %s: %s", " ".join(command), name, output)

    # ── stop ────────────────────────────────────────────────────

    async def stop(self, state: SessionState, *, session: ActiveSession | None = None) -> bool:
        """Stop the session container and reconcile its data.

        Returns:
            False if the container was not running (nothing done).

        Raises:
            VolumeSyncError: If copying a volume back fails; volumes are then kept.
        """
        report = await self.detect_status(state)
        if report.state is not ContainerState.RUNNING:
            logger.info("container %s is not running, nothing to stop", state.container_name)
            return False

        if session is not None:
            use_volumes = session.use_volumes
        elif report.recovered is not None:
            use_volumes = report.recovered.use_volumes
        else:
            use_volumes = state.flags.use_volumes

        await self._engine.stop(state.container_name)

        if use_volumes:
            state = await self.resolve_data_dirs(state)
            pairs = self._volume_pairs(state)
            for volume, host_dir in pairs:
                await self._volumes.sync_back(volume, host_dir)
            for volume, _ in pairs:
                await self._volumes.remove(volume)

        if self._gateway is not None and not await self._gateway.delete_metadata(state.container_name):
            logger.warning("could not delete run metadata for %s", state.container_name)

        if self._notifier is not None:
            try:
                await self._notifier.notify(
                    self._repository(state), baseline=session.baseline if session is not None else None
                )
            except GitError as exc:
                logger.error("git commit/push after stop failed: %s", exc)
        return True

    def _repository(self, state: SessionState) -> GitRepository:
        return GitRepository(state.paths.repo_root, self._gateway)
