"""Testing helpers for suites that drive supervised processes."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager

from service_harness.runner import ProcessGroup, SupervisedProcess
from service_harness.runner.waiter import Pattern
from service_harness.settings import HarnessSettings


def python_process(
    name: str,
    script: str,
    *,
    start: Pattern | None = None,
    stop: Pattern | None = None,
    settings: HarnessSettings | None = None,
) -> SupervisedProcess:
    """Supervise ``script`` run by the current interpreter with unbuffered output."""

    return SupervisedProcess.create(
        name,
        [sys.executable, "-u", "-c", script],
        start=start,
        stop=stop,
        settings=settings,
    )


@contextmanager
def running(*processes: SupervisedProcess, wait: bool = True) -> Iterator[ProcessGroup]:
    """Start ``processes`` for the duration of the block and always stop them."""

    group = ProcessGroup(processes)
    try:
        group.start_all()
        if wait:
            group.wait_start_all()
        yield group
    finally:
        group.stop_all()


__all__ = ["python_process", "running"]
