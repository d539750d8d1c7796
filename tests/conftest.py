"""Shared pytest fixtures for the impactncd test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from impactncd.config import Settings
from impactncd.shared.models import (
    LocalLocation,
    RemoteLocation,
    SessionFlags,
    SessionPaths,
    SessionState,
)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Return a Settings instance with test defaults."""
    return Settings(
        ssh_dir=str(tmp_path / ".ssh"),
        windows_host=False,
        docker_ready_timeout_seconds=1,
        web_ready_attempts=2,
        web_ready_interval_seconds=0,
    )


@pytest.fixture()
def local_state() -> SessionState:
    return SessionState(
        user_name="alice",
        password="secret",
        location=LocalLocation(),
        selected_repo="IMPACTncd_Germany",
        paths=SessionPaths(
            repo_root="/home/alice/IMPACTncd_Germany",
            output_dir="/data/outputs",
            synthpop_dir="/data/synthpop",
            ssh_private_key="/home/alice/.ssh/id_ed25519_alice",
            ssh_public_key="/home/alice/.ssh/id_ed25519_alice.pub",
            container_key_source="/home/alice/.ssh/id_ed25519_alice",
            known_hosts_source="/home/alice/.ssh/known_hosts",
        ),
    )


@pytest.fixture()
def remote_state() -> SessionState:
    return SessionState(
        user_name="bob",
        password="pw",
        location=RemoteLocation(ip="10.0.0.5"),
        selected_repo="IMPACTncd_Germany",
        paths=SessionPaths(
            repo_root="/home/php-workstation/Schreibtisch/Repositories/IMPACTncd_Germany",
            ssh_private_key="/home/bob/.ssh/id_ed25519_bob",
            ssh_public_key="/home/bob/.ssh/id_ed25519_bob.pub",
            container_key_source="/home/php-workstation/.ssh/id_ed25519_bob",
            known_hosts_source="/home/php-workstation/.ssh/known_hosts",
        ),
        flags=SessionFlags(),
    )


@pytest.fixture()
def mock_proc() -> AsyncMock:
    """Mock asyncio subprocess with empty output and exit code 0."""
    proc = AsyncMock()
    proc.communicate.return_value = (b"", b"")
    proc.returncode = 0
    proc.kill = lambda: None
    return proc
