"""Frozen Pydantic domain models shared by all modules."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from impactncd.shared.enums import ContainerState, DialogResult, RecoverySource

DEFAULT_REMOTE_USER = "php-workstation"


def utc_now() -> datetime:
    """Return timezone-aware UTC timestamps for model defaults."""
    return datetime.now(timezone.utc)


# ── Location ────────────────────────────────────────────────────


class LocalLocation(BaseModel):
    """Target the Docker engine on this machine."""

    model_config = {"frozen": True}

    kind: Literal["local"] = "local"

    def __str__(self) -> str:
        return "LOCAL"


class RemoteLocation(BaseModel):
    """Target a remote workstation over SSH."""

    model_config = {"frozen": True}

    kind: Literal["remote"] = "remote"
    ip: str
    host: str = ""
    user: str = DEFAULT_REMOTE_USER

    @property
    def ssh_target(self) -> str:
        return f"{self.user}@{self.ip}"

    def __str__(self) -> str:
        return f"REMOTE@{self.ip}"


Location = Annotated[LocalLocation | RemoteLocation, Field(discriminator="kind")]


# ── Session ─────────────────────────────────────────────────────


class SessionPaths(BaseModel):
    """Filesystem locations for one session.

    ``repo_root``, ``output_dir``, ``synthpop_dir``, ``container_key_source`` and
    ``known_hosts_source`` live on the Docker host. The SSH key pair paths are
    always on the local machine.
    """

    model_config = {"frozen": True}

    repo_root: str
    output_dir: str | None = None
    synthpop_dir: str | None = None
    ssh_private_key: str
    ssh_public_key: str
    container_key_source: str
    known_hosts_source: str


class SessionFlags(BaseModel):
    model_config = {"frozen": True}

    debug: bool = False
    direct_ssh: bool = False
    use_volumes: bool = False
    rebuild: bool = False
    high_compute: bool = False


class SessionState(BaseModel):
    """Everything gathered about one launcher run."""

    model_config = {"frozen": True}

    user_name: str
    password: str
    location: Location = Field(default_factory=LocalLocation)
    selected_repo: str
    paths: SessionPaths
    flags: SessionFlags = Field(default_factory=SessionFlags)
    port: int = 8787

    @property
    def container_name(self) -> str:
        return f"{self.selected_repo}_{self.user_name}"

    @property
    def is_remote(self) -> bool:
        return isinstance(self.location, RemoteLocation)

    @property
    def remote(self) -> RemoteLocation | None:
        return self.location if isinstance(self.location, RemoteLocation) else None


class RunOptions(BaseModel):
    """Per-invocation inputs to ``docker run`` not held by the session."""

    model_config = {"frozen": True}

    image: str
    custom_params: str = ""


# ── Observed state ──────────────────────────────────────────────


class ContainerInfo(BaseModel):
    """One row of the user's container inventory."""

    model_config = {"frozen": True}

    name: str
    status: str
    image: str = ""
    ports: tuple[int, ...] = ()

    @property
    def running(self) -> bool:
        return self.status == "running" or self.status.startswith("Up")


class RecoveredRuntimeInfo(BaseModel):
    """Connection details of a container that was already running."""

    model_config = {"frozen": True}

    password: str | None = None
    port: int | None = None
    use_volumes: bool = False
    source: RecoverySource


class StatusReport(BaseModel):
    model_config = {"frozen": True}

    state: ContainerState = ContainerState.UNKNOWN
    containers: tuple[ContainerInfo, ...] = ()
    recovered: RecoveredRuntimeInfo | None = None

    @property
    def used_ports(self) -> set[int]:
        return {port for info in self.containers if info.running for port in info.ports}


class RunMetadata(BaseModel):
    """Run record persisted on the remote host for reconnects."""

    model_config = {"frozen": True, "populate_by_name": True}

    container: str
    repo: str
    user: str
    password: str
    port: int
    use_volumes: bool = Field(default=False, alias="useVolumes")
    timestamp: datetime = Field(default_factory=utc_now)


class GitBaseline(BaseModel):
    model_config = {"frozen": True}

    commit: str | None = None
    status: str = ""


class BuildInfo(BaseModel):
    model_config = {"frozen": True}

    image: str
    built: bool = False
    used_prerequisite: bool = False


class ActiveSession(BaseModel):
    """Result of a successful start, consumed by stop."""

    model_config = {"frozen": True}

    container_name: str
    repo_path: str
    is_remote: bool
    port: int
    use_volumes: bool = False
    url: str = ""
    baseline: GitBaseline | None = None
    build: BuildInfo | None = None
    started_at: datetime = Field(default_factory=utc_now)


# ── Git ─────────────────────────────────────────────────────────


class ChangeSet(BaseModel):
    """Uncommitted changes found in a repository."""

    model_config = {"frozen": True}

    repo_path: str
    status_lines: tuple[str, ...] = ()
    branch: str = ""
    origin_url: str = ""

    @property
    def has_changes(self) -> bool:
        return bool(self.status_lines)


class CommitDecision(BaseModel):
    model_config = {"frozen": True}

    result: DialogResult
    message: str = ""
    push: bool = False
