"""Harness settings parsed from TOML with environment overrides."""

from __future__ import annotations

import os
import signal
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from service_harness.errors import ConfigurationError

__all__ = ["HarnessSettings", "load_settings", "parse_signal"]

_DEFAULT_WAIT_TIMEOUT = 25.0
_DEFAULT_KILL_TIMEOUT = 10.0
_ENV_WAIT_TIMEOUT = "SERVICE_HARNESS_WAIT_TIMEOUT"
_ENV_KILL_TIMEOUT = "SERVICE_HARNESS_KILL_TIMEOUT"
_ENV_ECHO = "SERVICE_HARNESS_ECHO"
_TRUTHY = {"1", "true", "True"}
_FALSY = {"0", "false", "False"}


@dataclass(slots=True)
class HarnessSettings:
    """Timeouts and termination behaviour shared by supervised processes."""

    wait_timeout: float = _DEFAULT_WAIT_TIMEOUT
    kill_timeout: float | None = _DEFAULT_KILL_TIMEOUT
    stop_signal: signal.Signals = signal.SIGTERM
    echo_output: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> HarnessSettings:
        if not isinstance(data, Mapping):
            raise ConfigurationError("[harness] must be a table")
        try:
            wait_timeout = float(data.get("wait_timeout", _DEFAULT_WAIT_TIMEOUT))
            kill_timeout = _optional_seconds(data.get("kill_timeout", _DEFAULT_KILL_TIMEOUT))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid timeout in [harness]: {exc}") from exc
        return cls(
            wait_timeout=wait_timeout,
            kill_timeout=kill_timeout,
            stop_signal=parse_signal(data.get("stop_signal", "SIGTERM")),
            echo_output=_parse_bool("echo_output", data.get("echo_output", True)),
        )

    @classmethod
    def from_toml(cls, path: Path) -> HarnessSettings:
        data = tomllib.loads(Path(path).read_text("utf-8"))
        return cls.from_mapping(data.get("harness", {}))

    def with_env_overrides(self, environ: Mapping[str, str] | None = None) -> HarnessSettings:
        """Return a copy that applies ``SERVICE_HARNESS_*`` overrides."""

        environ = os.environ if environ is None else environ
        settings = self
        try:
            if _ENV_WAIT_TIMEOUT in environ:
                settings = replace(settings, wait_timeout=float(environ[_ENV_WAIT_TIMEOUT]))
            if _ENV_KILL_TIMEOUT in environ:
                settings = replace(
                    settings, kill_timeout=_optional_seconds(environ[_ENV_KILL_TIMEOUT])
                )
        except ValueError as exc:
            raise ConfigurationError(f"Invalid timeout override: {exc}") from exc
        if _ENV_ECHO in environ:
            settings = replace(
                settings, echo_output=environ[_ENV_ECHO] not in _FALSY
            )
        return settings


def load_settings(path: Path | None = None) -> HarnessSettings:
    """Load settings from ``path`` (if given) and the process environment."""

    settings = HarnessSettings.from_toml(path) if path is not None else HarnessSettings()
    return settings.with_env_overrides()


def parse_signal(value: str | int | signal.Signals) -> signal.Signals:
    if isinstance(value, signal.Signals):
        return value
    try:
        if isinstance(value, int):
            return signal.Signals(value)
        name = str(value).upper()
        if not name.startswith("SIG"):
            name = f"SIG{name}"
        return signal.Signals[name]
    except (KeyError, ValueError) as exc:
        raise ConfigurationError(f"Unknown signal: {value!r}") from exc


def _parse_bool(key: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value in _TRUTHY | _FALSY:
        return value in _TRUTHY
    raise ConfigurationError(f"{key} must be a boolean, got {value!r}")


def _optional_seconds(value: object) -> float | None:
    if value is None:
        return None
    seconds = float(value)  # type: ignore[arg-type]
    return None if seconds < 0 else seconds
