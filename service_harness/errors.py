"""Exceptions raised by the harness."""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "AlreadyRunningError",
    "ConfigurationError",
    "HarnessError",
    "ProcessExitError",
    "SpawnError",
    "WaitTimeoutError",
]


class HarnessError(RuntimeError):
    """Base class for every harness failure."""


class ConfigurationError(HarnessError):
    """Raised when a process catalogue or settings file is malformed."""


class AlreadyRunningError(HarnessError):
    """Raised when starting a process that already owns a live child."""

    def __init__(self, name: str, pid: int) -> None:
        super().__init__(f"{name} is already running (pid {pid})")
        self.name = name
        self.pid = pid


class SpawnError(HarnessError):
    """Raised when a command cannot be spawned."""

    def __init__(self, name: str, command: Sequence[str], reason: str) -> None:
        super().__init__(f"{name}: failed to start {' '.join(command)!r}: {reason}")
        self.name = name
        self.command = list(command)
        self.reason = reason


class WaitTimeoutError(HarnessError):
    """Raised when a pattern never shows up in the captured output."""

    def __init__(
        self,
        name: str,
        pattern: str,
        timeout: float,
        tail: Sequence[str] = (),
        *,
        reason: str | None = None,
    ) -> None:
        reason = reason or f"no line matched /{pattern}/ within {timeout:g}s"
        message = f"{name}: {reason}"
        if tail:
            message += "\nlast output:\n" + "\n".join(f"  | {line}" for line in tail)
        super().__init__(message)
        self.name = name
        self.pattern = pattern
        self.timeout = timeout
        self.tail = list(tail)


class ProcessExitError(WaitTimeoutError):
    """Raised when output ends before the awaited pattern appeared."""

    def __init__(
        self,
        name: str,
        pattern: str,
        timeout: float,
        tail: Sequence[str] = (),
        *,
        returncode: int | None = None,
    ) -> None:
        status = "unknown status" if returncode is None else f"status {returncode}"
        super().__init__(
            name,
            pattern,
            timeout,
            tail,
            reason=f"output ended ({status}) before a line matched /{pattern}/",
        )
        self.returncode = returncode
