"""Block until a captured line matches a regular expression."""

from __future__ import annotations

import re
import time
from collections.abc import Callable

from service_harness.errors import ProcessExitError, WaitTimeoutError
from service_harness.runner.log_stream import LogBuffer, LogLine

__all__ = ["Pattern", "compile_pattern", "wait_for_line"]

Pattern = str | re.Pattern[str]


def compile_pattern(pattern: Pattern) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


def wait_for_line(
    buffer: LogBuffer,
    pattern: Pattern,
    timeout: float | None,
    *,
    start: int = 0,
    name: str = "process",
    exit_status: Callable[[], int | None] | None = None,
) -> LogLine:
    """Return the first line at or after ``start`` that matches ``pattern``.

    Lines are examined in arrival order and are never removed from the
    buffer. The scan sleeps on the buffer's condition between appends and
    fails with :class:`WaitTimeoutError` once ``timeout`` elapses, or with
    :class:`ProcessExitError` as soon as the stream has ended and every
    remaining line has been examined.
    """

    regex = compile_pattern(pattern)
    deadline = None if timeout is None else time.monotonic() + timeout
    index = start
    with buffer.condition:
        while True:
            line = buffer.line_at(index)
            while line is not None:
                if regex.search(line.text):
                    return line
                index += 1
                line = buffer.line_at(index)
            if buffer.closed:
                raise ProcessExitError(
                    name,
                    regex.pattern,
                    timeout or 0.0,
                    buffer.tail(),
                    returncode=exit_status() if exit_status else None,
                )
            if deadline is None:
                buffer.condition.wait()
                continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WaitTimeoutError(name, regex.pattern, timeout or 0.0, buffer.tail())
            buffer.condition.wait(remaining)
