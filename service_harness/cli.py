"""Click-based CLI for running a process catalogue by hand."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

import click

from service_harness.catalogue import load_catalogue
from service_harness.errors import HarnessError
from service_harness.runner import ProcessGroup, SupervisedProcess


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _load_group(config: Path, only: Iterable[str]) -> ProcessGroup:
    try:
        return load_catalogue(config).build_group(only)
    except HarnessError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log captured child output.")
def app(verbose: bool) -> None:
    """Supervise the services described in a TOML catalogue."""

    _configure_logging(verbose)


@app.command()
@click.argument(
    "config",
    type=click.Path(exists=True, dir_okay=False, readable=True, path_type=Path),
)
@click.option("--only", multiple=True, help="Restrict the run to the named process(es).")
def check(config: Path, only: Iterable[str]) -> None:
    """Start and stop each process in turn, checking both patterns."""

    group = _load_group(config, only)
    failures = 0
    for process in group:
        error = _check_one(process)
        if error is None:
            click.echo(f"ok    {process.name}")
        else:
            failures += 1
            click.echo(f"FAIL  {process.name}: {error}")
    if failures:
        raise click.exceptions.Exit(1)


def _check_one(process: SupervisedProcess) -> str | None:
    try:
        process.start()
        process.wait_start()
        process.stop()
        process.wait_stop()
    except HarnessError as exc:
        return str(exc).splitlines()[0]
    finally:
        process.stop()
    return None


@app.command()
@click.argument(
    "config",
    type=click.Path(exists=True, dir_okay=False, readable=True, path_type=Path),
)
@click.option(
    "--duration",
    type=float,
    default=None,
    help="Stop after this many seconds instead of waiting for Ctrl-C.",
)
@click.option("--only", multiple=True, help="Restrict the run to the named process(es).")
def up(config: Path, only: Iterable[str], duration: float | None) -> None:
    """Start every process, wait until ready, and keep them up until interrupted."""

    group = _load_group(config, only)
    try:
        with group:
            click.echo(f"ready: {', '.join(process.name for process in group)}")
            try:
                threading.Event().wait(duration)
            except KeyboardInterrupt:
                click.echo("interrupted, stopping")
        group.wait_stop_all()
    except HarnessError as exc:
        raise click.ClickException(str(exc)) from exc


__all__ = ["app"]
