"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from service_harness import HarnessSettings, SupervisedProcess
from service_harness.runner.waiter import Pattern
from service_harness.testing import python_process


@pytest.fixture()
def settings() -> HarnessSettings:
    return HarnessSettings(wait_timeout=5.0, kill_timeout=5.0)


@pytest.fixture()
def make_process(
    settings: HarnessSettings,
) -> Iterator[Callable[..., SupervisedProcess]]:
    """Build python-script processes that are always stopped at teardown."""

    created: list[SupervisedProcess] = []

    def _make(
        name: str,
        script: str,
        *,
        start: Pattern | None = None,
        stop: Pattern | None = None,
        settings: HarnessSettings = settings,
    ) -> SupervisedProcess:
        process = python_process(name, script, start=start, stop=stop, settings=settings)
        created.append(process)
        return process

    yield _make
    for process in created:
        process.stop()
