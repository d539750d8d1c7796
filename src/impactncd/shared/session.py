"""Construction of the per-run SessionState from raw user input."""

from __future__ import annotations

import os
import posixpath

from impactncd.config import Settings
from impactncd.shared.exceptions import PreconditionError
from impactncd.shared.models import LocalLocation, RemoteLocation, SessionFlags, SessionPaths, SessionState


def normalize_identity(value: str) -> str:
    """Lowercase and drop all whitespace."""
    return "".join(value.split()).lower()


def key_file_name(user_name: str) -> str:
    return f"id_ed25519_{user_name}"


def parse_location(raw: str, *, remote_user: str, host: str = "") -> LocalLocation | RemoteLocation:
    """Parse the ``LOCAL`` / ``REMOTE@<ip>`` form used on the command line."""
    token = raw.strip()
    if not token or token.upper() == "LOCAL":
        return LocalLocation()
    if token.upper().startswith("REMOTE@"):
        ip = token.split("@", 1)[1].strip()
        if not ip:
            raise PreconditionError(f"remote location without address: {raw!r}")
        return RemoteLocation(ip=ip, host=host or ip, user=remote_user)
    raise PreconditionError(f"unrecognised container location: {raw!r}")


def build_session_state(
    *,
    user_name: str,
    password: str,
    location: LocalLocation | RemoteLocation,
    settings: Settings,
    repo: str | None = None,
    local_repo_path: str | None = None,
    flags: SessionFlags | None = None,
    port: int | None = None,
) -> SessionState:
    """Derive names and paths for one session.

    Local sessions need ``local_repo_path``; the repository name defaults to
    its last component. Remote sessions resolve the repository under
    ``settings.remote_repo_base`` on the workstation.
    """
    user = normalize_identity(user_name)
    if not user:
        raise PreconditionError("user name must not be empty")
    secret = normalize_identity(password)

    key_name = key_file_name(user)
    local_key = os.path.join(settings.ssh_dir_expanded, key_name)

    if isinstance(location, RemoteLocation):
        if not repo:
            raise PreconditionError("a repository name is required for remote sessions")
        remote_ssh = f"/home/{location.user}/.ssh"
        repo_root = posixpath.join(settings.remote_repo_base, repo)
        key_source = posixpath.join(remote_ssh, key_name)
        known_hosts = posixpath.join(remote_ssh, "known_hosts")
    else:
        if not local_repo_path:
            raise PreconditionError("a local repository path is required for local sessions")
        repo_root = local_repo_path.rstrip("\\/") or local_repo_path
        repo = repo or _last_component(repo_root)
        key_source = local_key
        known_hosts = os.path.join(settings.ssh_dir_expanded, "known_hosts")

    return SessionState(
        user_name=user,
        password=secret,
        location=location,
        selected_repo=repo,
        paths=SessionPaths(
            repo_root=repo_root,
            ssh_private_key=local_key,
            ssh_public_key=f"{local_key}.pub",
            container_key_source=key_source,
            known_hosts_source=known_hosts,
        ),
        flags=flags or SessionFlags(),
        port=port or settings.default_port,
    )


def _last_component(path: str) -> str:
    return path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
