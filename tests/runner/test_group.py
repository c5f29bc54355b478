from __future__ import annotations

import time
from collections.abc import Callable

import pytest

from service_harness import (
    HarnessSettings,
    ProcessGroup,
    ProcessState,
    SpawnError,
    SupervisedProcess,
    WaitTimeoutError,
)
from service_harness.testing import running

MakeProcess = Callable[..., SupervisedProcess]

READY_LATER = "import time\ntime.sleep({delay})\nprint('{name} ready')\nwhile True:\n    time.sleep(0.05)"


def _member(
    make_process: MakeProcess,
    name: str,
    delay: float = 0.1,
    *,
    settings: HarnessSettings | None = None,
) -> SupervisedProcess:
    script = READY_LATER.format(delay=delay, name=name)
    if settings is None:
        return make_process(name, script, start=rf"{name} ready")
    return make_process(name, script, start=rf"{name} ready", settings=settings)


def test_group_starts_waits_and_stops_every_member(make_process: MakeProcess) -> None:
    settings = HarnessSettings(wait_timeout=2.0)
    group = ProcessGroup(
        _member(make_process, name, delay, settings=settings)
        for name, delay in (("watch", 0.3), ("web", 0.1), ("client", 0.2))
    )
    started = time.monotonic()
    group.start_all()
    assert all(process.pid is not None for process in group)
    group.wait_start_all()
    assert time.monotonic() - started < 2
    assert [process.state for process in group] == [ProcessState.RUNNING] * 3

    group.stop_all()
    assert group.idle
    assert all(process.pid is None for process in group)


def test_lookup_by_name(make_process: MakeProcess) -> None:
    group = ProcessGroup()
    web = group.add(_member(make_process, "web"))
    assert len(group) == 1
    assert group["web"] is web
    with pytest.raises(KeyError):
        group["missing"]


def test_start_all_does_not_roll_back(make_process: MakeProcess) -> None:
    first = _member(make_process, "first")
    broken = SupervisedProcess.create("broken", ["/definitely/not/a/real/binary"])
    group = ProcessGroup([first, broken])
    with pytest.raises(SpawnError):
        group.start_all()
    assert first.pid is not None
    group.stop_all()
    assert group.idle


def test_stop_all_stops_everyone_before_reraising(
    make_process: MakeProcess, monkeypatch: pytest.MonkeyPatch
) -> None:
    failing = _member(make_process, "failing")
    healthy = _member(make_process, "healthy")
    group = ProcessGroup([failing, healthy]).start_all()

    original_stop = failing.stop

    def _boom() -> SupervisedProcess:
        original_stop()
        raise RuntimeError("teardown failed")

    monkeypatch.setattr(failing, "stop", _boom)
    with pytest.raises(RuntimeError, match="teardown failed"):
        group.stop_all()
    assert healthy.state is ProcessState.IDLE


def test_context_manager_cleans_up_when_readiness_fails(make_process: MakeProcess) -> None:
    ready = _member(make_process, "ready")
    never = make_process(
        "never",
        "import time\nwhile True:\n    time.sleep(0.05)",
        start="ready",
        settings=HarnessSettings(wait_timeout=0.3),
    )
    with pytest.raises(WaitTimeoutError):
        with ProcessGroup([ready, never]):
            pass
    assert ready.state is ProcessState.IDLE
    assert never.state is ProcessState.IDLE


def test_running_helper_scopes_processes(make_process: MakeProcess) -> None:
    web = _member(make_process, "web")
    with running(web) as group:
        assert web.state is ProcessState.RUNNING
        assert list(group) == [web]
    assert web.state is ProcessState.IDLE
