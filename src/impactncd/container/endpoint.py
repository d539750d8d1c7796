"""Which Docker engine a session talks to, and how."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from impactncd.config import Settings
from impactncd.shared.models import SessionState


@dataclass(frozen=True, slots=True)
class DockerEndpoint:
    """Target engine for CLI and SDK calls.

    ``context`` and ``docker_host`` are mutually exclusive: a named context is
    selected with ``--context``; a direct endpoint is exported as
    ``DOCKER_HOST``. ``ssh_url`` is what the docker SDK connects to for any
    remote engine.
    """

    context: str | None = None
    docker_host: str | None = None
    ssh_url: str | None = None

    @property
    def is_local(self) -> bool:
        return self.ssh_url is None

    def cli_prefix(self) -> list[str]:
        return ["--context", self.context] if self.context else []

    def cli_env(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        env = dict(os.environ if base is None else base)
        if self.docker_host:
            env["DOCKER_HOST"] = self.docker_host
        else:
            env.pop("DOCKER_HOST", None)
        if self.context:
            env.pop("DOCKER_CONTEXT", None)
        return env


def context_name(prefix: str, ip: str) -> str:
    return f"{prefix}-{ip}"


def resolve_endpoint(state: SessionState, settings: Settings) -> DockerEndpoint:
    remote = state.remote
    if remote is None:
        return DockerEndpoint()
    url = f"ssh://{remote.ssh_target}"
    if state.flags.direct_ssh:
        return DockerEndpoint(docker_host=url, ssh_url=url)
    return DockerEndpoint(context=context_name(settings.docker_context_prefix, remote.ip), ssh_url=url)
