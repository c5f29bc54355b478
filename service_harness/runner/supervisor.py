"""Supervised service processes whose lifecycle is observed through their output."""

from __future__ import annotations

import enum
import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO, cast

from service_harness.errors import AlreadyRunningError, SpawnError
from service_harness.runner.log_stream import LogBuffer, LogLine, LogStreamReader
from service_harness.runner.waiter import Pattern, compile_pattern, wait_for_line
from service_harness.settings import HarnessSettings

__all__ = ["ProcessSpec", "ProcessState", "SupervisedProcess"]

logger = logging.getLogger("service_harness.runner")

# How long a failed wait gives a child whose output ended to be reaped.
_EXIT_STATUS_GRACE = 0.5


class ProcessState(str, enum.Enum):
    """Lifecycle states for a supervised process."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"


@dataclass(slots=True)
class ProcessSpec:
    """Launch specification for one supervised service.

    ``command`` is executed directly, never through a shell. A command that
    leaves a grandchild holding its output (a wrapper script that backgrounds
    the real service, say) keeps the pipe open after the child is reaped;
    ``stop`` then gives up on the reader after ``kill_timeout`` seconds.
    """

    name: str
    command: str | Sequence[str]
    start_pattern: Pattern | None = None
    stop_pattern: Pattern | None = None
    env: Mapping[str, str | None] | None = None
    cwd: Path | None = None

    @property
    def argv(self) -> list[str]:
        if isinstance(self.command, str):
            return shlex.split(self.command)
        return [str(arg) for arg in self.command]


class SupervisedProcess:
    """Launch a service, capture its combined output, and wait on log patterns."""

    def __init__(
        self,
        spec: ProcessSpec,
        *,
        settings: HarnessSettings | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self.spec = spec
        self.settings = settings or HarnessSettings()
        self.base_env = dict(os.environ if base_env is None else base_env)
        self.start_pattern = (
            compile_pattern(spec.start_pattern) if spec.start_pattern is not None else None
        )
        self.stop_pattern = (
            compile_pattern(spec.stop_pattern) if spec.stop_pattern is not None else None
        )
        self.returncode: int | None = None
        self._state = ProcessState.IDLE
        self._popen: subprocess.Popen[str] | None = None
        self._reader: LogStreamReader | None = None
        # A process that never ran has an empty, already-ended log.
        self._buffer = LogBuffer()
        self._buffer.close()
        self._cursor = 0

    @classmethod
    def create(
        cls,
        name: str,
        command: str | Sequence[str],
        *,
        start: Pattern | None = None,
        stop: Pattern | None = None,
        env: Mapping[str, str | None] | None = None,
        cwd: Path | None = None,
        settings: HarnessSettings | None = None,
    ) -> SupervisedProcess:
        spec = ProcessSpec(
            name=name,
            command=command,
            start_pattern=start,
            stop_pattern=stop,
            env=env,
            cwd=cwd,
        )
        return cls(spec, settings=settings)

    def __repr__(self) -> str:
        return f"<SupervisedProcess {self.name!r} state={self._state.value} pid={self.pid}>"

    def __enter__(self) -> SupervisedProcess:  # noqa: D401 - context manager
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.stop()

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def pid(self) -> int | None:
        return self._popen.pid if self._popen is not None else None

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def log_buffer(self) -> LogBuffer:
        return self._buffer

    @property
    def reader(self) -> LogStreamReader | None:
        return self._reader

    def lines(self) -> list[str]:
        """Return every line captured since the last start."""

        return [line.text for line in self._buffer.snapshot()]

    # ---------------------------------------------------------------- lifecycle
    def start(self) -> SupervisedProcess:
        if self._popen is not None:
            raise AlreadyRunningError(self.name, self._popen.pid)
        argv = self.spec.argv
        if not argv:
            raise SpawnError(self.name, argv, "empty command")
        self._log("starting")
        try:
            popen = subprocess.Popen(  # noqa: S603
                argv,
                cwd=str(self.spec.cwd) if self.spec.cwd is not None else None,
                env=self._build_env(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            self._log(f"failed to start: {exc}", level=logging.ERROR)
            raise SpawnError(self.name, argv, str(exc)) from exc

        buffer = LogBuffer()
        if self.settings.echo_output:
            buffer.add_listener(self._echo)
        self._popen = popen
        self._buffer = buffer
        self._cursor = 0
        self.returncode = None
        pipe = cast(TextIO, popen.stdout)
        self._reader = LogStreamReader(pipe, buffer, name=self.name).start()
        self._state = ProcessState.STARTING
        return self

    def stop(self) -> SupervisedProcess:
        popen = self._popen
        if popen is None:
            return self
        self._log("stopping")
        popen.send_signal(self.settings.stop_signal)
        try:
            self.returncode = popen.wait(timeout=self.settings.kill_timeout)
        except subprocess.TimeoutExpired:
            self._log(
                f"still alive after {self.settings.kill_timeout:g}s, killing",
                level=logging.WARNING,
            )
            popen.kill()
            self.returncode = popen.wait()
        if self._reader is not None:
            self._reader.join(self.settings.kill_timeout)
            if self._reader.is_alive():
                self._log(
                    "output pipe still open after exit; another process inherited it",
                    level=logging.WARNING,
                )
        self._popen = None
        self._reader = None
        self._state = ProcessState.IDLE
        self._log(f"exited with status {self.returncode}")
        return self

    def wait_start(self) -> LogLine | None:
        if self.start_pattern is None:
            self._mark_running()
            return None
        self._log("waiting to start")
        line = self.wait_for(self.start_pattern)
        self._mark_running()
        self._log("started")
        return line

    def wait_stop(self) -> LogLine | None:
        if self.stop_pattern is None:
            return None
        self._log("waiting to stop")
        line = self.wait_for(self.stop_pattern)
        self._log("stopped cleanly")
        return line

    def wait_for(self, pattern: Pattern, timeout: float | None = None) -> LogLine:
        """Wait for the next line matching ``pattern`` after the previous match."""

        line = wait_for_line(
            self._buffer,
            pattern,
            self.settings.wait_timeout if timeout is None else timeout,
            start=self._cursor,
            name=self.name,
            exit_status=self._exit_status,
        )
        self._cursor = line.index + 1
        return line

    # ------------------------------------------------------------------ helpers
    def _mark_running(self) -> None:
        if self._state is ProcessState.STARTING:
            self._state = ProcessState.RUNNING

    def _exit_status(self) -> int | None:
        popen = self._popen
        if popen is None:
            return self.returncode
        try:
            return popen.wait(timeout=_EXIT_STATUS_GRACE)
        except subprocess.TimeoutExpired:
            return None

    def _build_env(self) -> dict[str, str]:
        env = dict(self.base_env)
        for key, value in (self.spec.env or {}).items():
            if value is None:
                env.pop(key, None)
            else:
                env[key] = str(value)
        env.setdefault("PYTHONUNBUFFERED", "1")
        env.pop("PYTHONHOME", None)
        return env

    def _echo(self, line: LogLine) -> None:
        logging.getLogger(f"service_harness.output.{self.name}").debug(line.text)

    def _log(self, phase: str, *, level: int = logging.INFO) -> None:
        logger.log(
            level,
            "-> %s: %s",
            self.name,
            phase,
            extra={"service": self.name, "phase": phase, "child_pid": self.pid},
        )
