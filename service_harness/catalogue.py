"""Load process catalogues (settings plus process specs) from TOML."""

from __future__ import annotations

import re
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from service_harness.errors import ConfigurationError
from service_harness.runner import ProcessGroup, ProcessSpec, SupervisedProcess
from service_harness.settings import HarnessSettings

__all__ = ["Catalogue", "load_catalogue", "parse_process_spec"]


@dataclass(slots=True)
class Catalogue:
    """Settings and the ordered process specs read from one file."""

    settings: HarnessSettings
    specs: list[ProcessSpec]

    def build_group(self, only: Iterable[str] | None = None) -> ProcessGroup:
        wanted = set(only or ())
        unknown = wanted - {spec.name for spec in self.specs}
        if unknown:
            raise ConfigurationError(f"Unknown process(es): {', '.join(sorted(unknown))}")
        return ProcessGroup(
            SupervisedProcess(spec, settings=self.settings)
            for spec in self.specs
            if not wanted or spec.name in wanted
        )


def load_catalogue(path: Path, *, apply_env: bool = True) -> Catalogue:
    """Parse ``path`` into settings and process specs.

    Relative ``cwd`` entries resolve against the file's directory; the
    ``SERVICE_HARNESS_*`` environment overrides apply unless ``apply_env`` is
    false.
    """

    path = Path(path)
    try:
        data = tomllib.loads(path.read_text("utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc
    harness = data.get("harness", {})
    if not isinstance(harness, Mapping):
        raise ConfigurationError(f"{path}: [harness] must be a table")
    settings = HarnessSettings.from_mapping(harness)
    if apply_env:
        settings = settings.with_env_overrides()
    processes = data.get("processes", {})
    if not isinstance(processes, Mapping):
        raise ConfigurationError(f"{path}: [processes] must be a table")
    specs = [
        parse_process_spec(name, entry, base_dir=path.parent)
        for name, entry in processes.items()
    ]
    return Catalogue(settings=settings, specs=specs)


def parse_process_spec(
    name: str, entry: Mapping[str, Any], *, base_dir: Path | None = None
) -> ProcessSpec:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"processes.{name} must be a table")
    command = entry.get("command")
    if isinstance(command, list) and command and all(isinstance(a, str) for a in command):
        command = list(command)
    elif not isinstance(command, str) or not command.strip():
        raise ConfigurationError(f"processes.{name}.command must be a string or list of strings")

    cwd = entry.get("cwd")
    cwd_path: Path | None = None
    if cwd is not None:
        if not isinstance(cwd, str):
            raise ConfigurationError(f"processes.{name}.cwd must be a string")
        cwd_path = Path(cwd)
        if not cwd_path.is_absolute() and base_dir is not None:
            cwd_path = base_dir / cwd_path

    raw_env = entry.get("env", {})
    if not isinstance(raw_env, Mapping):
        raise ConfigurationError(f"processes.{name}.env must be a table")
    env: dict[str, str | None] = {}
    for key, value in raw_env.items():
        env[key] = None if value is False else str(value)

    return ProcessSpec(
        name=name,
        command=command,
        start_pattern=_regex(name, "start", entry.get("start")),
        stop_pattern=_regex(name, "stop", entry.get("stop")),
        env=env or None,
        cwd=cwd_path,
    )


def _regex(name: str, key: str, value: object) -> re.Pattern[str] | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"processes.{name}.{key} must be a string")
    try:
        return re.compile(value)
    except re.error as exc:
        raise ConfigurationError(f"processes.{name}.{key}: invalid pattern: {exc}") from exc
