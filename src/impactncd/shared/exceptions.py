"""Hierarchical exception types for the IMPACTncd launcher."""

from __future__ import annotations


class ImpactError(Exception):
    """Base exception for all launcher errors."""


# ── Environment ─────────────────────────────────────────────────


class EnvironmentMissingError(ImpactError):
    """A required tool or daemon is not available."""


class CommandNotFoundError(EnvironmentMissingError):
    """An external binary (docker, ssh, git, ...) is not installed."""


class DockerUnavailableError(EnvironmentMissingError):
    """The Docker daemon could not be reached."""


class CommandTimeoutError(ImpactError):
    """An external command exceeded its time limit."""


# ── SSH ─────────────────────────────────────────────────────────


class SshTransportError(ImpactError):
    """SSH connection refused, timed out or otherwise failed."""


class SshAuthError(SshTransportError):
    """Key-based authentication could not be established."""


# ── Orchestration ───────────────────────────────────────────────


class PreconditionError(ImpactError):
    """Start/stop refused before any mutating action (port in use, missing dir, ...)."""


class ImageBuildError(ImpactError):
    """``docker build`` returned a non-zero exit code."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class ContainerStartError(ImpactError):
    """``docker run`` failed or the container did not come up."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class VolumeSyncError(ImpactError):
    """Copying data between a named volume and a host directory failed."""


# ── Git / GitHub ────────────────────────────────────────────────


class GitError(ImpactError):
    """A git invocation failed."""


class GitHubError(ImpactError):
    """GitHub REST API request failed."""
