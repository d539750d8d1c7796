"""Domain enumerations used across all modules."""

from __future__ import annotations

from enum import Enum, unique


@unique
class ContainerState(str, Enum):
    """Observed lifecycle state of the target container."""

    UNKNOWN = "unknown"
    STOPPED = "stopped"
    RUNNING = "running"


@unique
class DialogResult(str, Enum):
    """Outcome of an interactive prompt."""

    NEXT = "next"
    CANCEL = "cancel"


@unique
class RecoverySource(str, Enum):
    """Where the connection details of a running container came from."""

    METADATA = "metadata"
    INSPECT = "inspect"
