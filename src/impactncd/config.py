"""Centralised configuration via Pydantic Settings."""

from __future__ import annotations

import os

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables.

    One instance is built at process start and handed to every component;
    nothing reads configuration from module globals.
    """

    model_config = {"env_prefix": "IMPACTNCD_", "frozen": True}

    # Runtime
    debug: bool = False
    log_file: str = ""
    non_interactive: bool = False

    # Remote workstation
    remote_user: str = "php-workstation"
    remote_repo_base: str = "/home/php-workstation/Schreibtisch/Repositories"
    metadata_dir: str = "/tmp/impactncd"

    # SSH
    ssh_dir: str = "~/.ssh"
    ssh_connect_timeout: int = 10
    ssh_bootstrap_timeout: int = 30

    # Docker
    default_port: int = 8787
    dockerfile: str = "docker_setup/Dockerfile.IMPACTncdGER"
    prerequisite_dockerfile: str = "docker_setup/Dockerfile.prerequisite.IMPACTncdGER"
    rsync_image: str = "impactncd-rsync:latest"
    docker_context_prefix: str = "impactncd"
    docker_desktop_path: str = ""
    docker_ready_timeout_seconds: int = 30
    build_timeout_seconds: int = 3600
    command_timeout_seconds: int = 120

    # Remote-only resource limits for simulation runs
    high_compute_cpus: int = 32
    high_compute_memory: str = "384g"

    # RStudio readiness polling
    web_ready_attempts: int = 60
    web_ready_interval_seconds: float = 2.0

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_token: str = ""

    # Docker Desktop on Windows rejects POSIX-rooted mount sources from the local side.
    windows_host: bool = Field(default_factory=lambda: os.name == "nt")

    @property
    def ssh_dir_expanded(self) -> str:
        return os.path.expanduser(self.ssh_dir)


def get_settings() -> Settings:
    """Build settings from the environment; tests construct ``Settings`` directly."""
    return Settings()
