"""Process supervision harness for multi-process integration tests."""

from .errors import (
    AlreadyRunningError,
    ConfigurationError,
    HarnessError,
    ProcessExitError,
    SpawnError,
    WaitTimeoutError,
)
from .runner import ProcessGroup, ProcessSpec, ProcessState, SupervisedProcess
from .settings import HarnessSettings
from .version import __version__  # noqa: F401

__all__ = [
    "AlreadyRunningError",
    "ConfigurationError",
    "HarnessError",
    "HarnessSettings",
    "ProcessExitError",
    "ProcessGroup",
    "ProcessSpec",
    "ProcessState",
    "SpawnError",
    "SupervisedProcess",
    "WaitTimeoutError",
]
