"""Pure assembly of the ``docker run`` argument vector."""

from __future__ import annotations

import re

from impactncd.paths.translator import to_docker_mount_path
from impactncd.shared.exceptions import PreconditionError
from impactncd.shared.models import RunOptions, SessionState

RSTUDIO_PORT = 8787
RSTUDIO_HOME = "/home/rstudio"
RSTUDIO_UID = 1000
RSTUDIO_GID = 1000
HOST_REPO_MOUNT = "/host-repo"
KEY_MOUNT_DIR = "/keys"
KNOWN_HOSTS_MOUNT = "/etc/ssh/ssh_known_hosts"
HIGH_COMPUTE_CPUS = 32
HIGH_COMPUTE_MEMORY = "384g"

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


def volume_names(user_name: str) -> tuple[str, str]:
    """Named volumes for (outputs, synthpop) of ``user_name``."""
    return (
        _NON_ALNUM_RE.sub("_", f"impactncd_germany_output_{user_name}"),
        _NON_ALNUM_RE.sub("_", f"impactncd_germany_synthpop_{user_name}"),
    )


def image_name(repo: str) -> str:
    return repo.lower()


def container_key_path(user_name: str) -> str:
    """Key location the in-container git uses (a re-owned copy of the mounted key)."""
    return f"{RSTUDIO_HOME}/.ssh/id_ed25519_{user_name}"


def mounted_key_path(user_name: str) -> str:
    return f"{KEY_MOUNT_DIR}/id_ed25519_{user_name}"


def git_ssh_command(user_name: str) -> str:
    return (
        f"ssh -i {container_key_path(user_name)} -o IdentitiesOnly=yes "
        f"-o UserKnownHostsFile={KNOWN_HOSTS_MOUNT} -o StrictHostKeyChecking=yes"
    )


def build_run_args(
    state: SessionState,
    options: RunOptions,
    *,
    high_compute_cpus: int = HIGH_COMPUTE_CPUS,
    high_compute_memory: str = HIGH_COMPUTE_MEMORY,
) -> list[str]:
    """Return the arguments following ``docker`` for starting the session container.

    The order is fixed and the image is always the last element. Named volumes
    and bind mounts for the data directories are mutually exclusive; resource
    limits apply only to remote high-compute sessions.

    Raises:
        PreconditionError: If bind mounts are requested but a data directory is unresolved.
    """
    is_local = not state.is_remote
    user = state.user_name
    repo = state.selected_repo
    workdir = f"{RSTUDIO_HOME}/{repo}"
    repo_src = to_docker_mount_path(state.paths.repo_root, is_local)

    args = ["run", "-d", "--rm", "--name", state.container_name]
    args += [
        "-e", f"PASSWORD={state.password}",
        "-e", "DISABLE_AUTH=false",
        "-e", f"USERID={RSTUDIO_UID}",
        "-e", f"GROUPID={RSTUDIO_GID}",
    ]  # fmt: skip
    args += ["-e", f"GIT_SSH_COMMAND={git_ssh_command(user)}"]
    args += ["-v", f"{repo_src}:{HOST_REPO_MOUNT}", "-v", f"{repo_src}:{workdir}"]
    args += ["-e", f"REPO_SYNC_PATH={HOST_REPO_MOUNT}", "-e", "SYNC_ENABLED=true"]
    args += ["-p", f"{state.port}:{RSTUDIO_PORT}"]
    args += options.custom_params.split()

    if state.flags.use_volumes:
        output_volume, synthpop_volume = volume_names(user)
        args += ["-v", f"{output_volume}:{workdir}/outputs", "-v", f"{synthpop_volume}:{workdir}/inputs/synthpop"]
    else:
        if not state.paths.output_dir or not state.paths.synthpop_dir:
            raise PreconditionError("output_dir and synthpop_dir must be resolved before building bind mounts")
        output_src = to_docker_mount_path(state.paths.output_dir, is_local)
        synthpop_src = to_docker_mount_path(state.paths.synthpop_dir, is_local)
        args += ["-v", f"{output_src}:{workdir}/outputs", "-v", f"{synthpop_src}:{workdir}/inputs/synthpop"]

    if state.flags.high_compute and state.is_remote:
        args += ["--cpus", str(high_compute_cpus), "-m", high_compute_memory]

    key_src = to_docker_mount_path(state.paths.container_key_source, is_local)
    known_hosts_src = to_docker_mount_path(state.paths.known_hosts_source, is_local)
    args += ["-v", f"{key_src}:{mounted_key_path(user)}:ro", "-v", f"{known_hosts_src}:{KNOWN_HOSTS_MOUNT}:ro"]
    args += ["--workdir", workdir]
    args.append(options.image)
    return args
