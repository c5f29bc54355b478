from __future__ import annotations

import json
import sys
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from service_harness.cli import app

GRACEFUL = textwrap.dedent(
    """
    import signal, sys, time

    def bye(*_):
        print("master complete", flush=True)
        sys.exit(0)

    signal.signal(signal.SIGTERM, bye)
    print("worker=1 ready", flush=True)
    while True:
        time.sleep(0.05)
    """
)


def _process_table(name: str, script: str, **patterns: str) -> str:
    command = json.dumps([sys.executable, "-u", "-c", script])
    lines = [f"[processes.{name}]", f"command = {command}"]
    lines += [f"{key} = {json.dumps(value)}" for key, value in patterns.items()]
    return "\n".join(lines) + "\n"


@pytest.fixture()
def config(tmp_path: Path) -> Path:
    path = tmp_path / "services.toml"
    path.write_text(
        "[harness]\nwait_timeout = 1\nkill_timeout = 5\n\n"
        + _process_table("web", GRACEFUL, start="worker=1 ready", stop="master complete")
        + _process_table("broken", "print('booting')", start="ready")
    )
    return path


def test_check_reports_each_process(config: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["check", str(config)])
    assert result.exit_code == 1
    assert "ok    web" in result.output
    assert "FAIL  broken" in result.output


def test_check_only_healthy_process(config: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["check", str(config), "--only", "web"])
    assert result.exit_code == 0, result.output
    assert "broken" not in result.output


def test_unknown_process_is_a_usage_error(config: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["check", str(config), "--only", "nginx"])
    assert result.exit_code == 1
    assert "Unknown process(es): nginx" in result.output


def test_up_runs_group_for_duration(config: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["up", str(config), "--only", "web", "--duration", "0.2"])
    assert result.exit_code == 0, result.output
    assert "ready: web" in result.output


def test_up_fails_when_a_member_never_becomes_ready(config: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(app, ["up", str(config), "--duration", "0.2"])
    assert result.exit_code == 1
    assert "broken" in result.output


def test_malformed_catalogue_is_reported_without_traceback(tmp_path: Path) -> None:
    path = tmp_path / "services.toml"
    path.write_text('[processes.web]\ncommand = "true"\nenv = "X"\n')
    runner = CliRunner()
    result = runner.invoke(app, ["check", str(path)])
    assert result.exit_code == 1
    assert "processes.web.env must be a table" in result.output
    assert not isinstance(result.exception, ValueError)
