"""Injected access to the shared messaging channel used by supervised services."""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

__all__ = ["ChannelScope", "qualified_name"]

ChannelT = TypeVar("ChannelT")

_ENV_LABEL = "RACK_ENV"
_DEFAULT_LABEL = "development"
_PREFIX = "routemaster"


def qualified_name(name: str, environment: str | None = None) -> str:
    """Namespace ``name`` by runtime environment, e.g. ``routemaster.test.events``."""

    label = environment or os.environ.get(_ENV_LABEL, _DEFAULT_LABEL)
    return f"{_PREFIX}.{label}.{name}"


class ChannelScope(Generic[ChannelT]):
    """Create a channel once, hand the same instance to every caller, close it once."""

    def __init__(
        self,
        acquire: Callable[[], ChannelT],
        *,
        environment: str | None = None,
    ) -> None:
        self._acquire = acquire
        self.environment = environment or os.environ.get(_ENV_LABEL, _DEFAULT_LABEL)
        self._channel: ChannelT | None = None
        self._lock = threading.Lock()

    def __enter__(self) -> ChannelScope[ChannelT]:  # noqa: D401 - context manager
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def channel(self) -> ChannelT:
        with self._lock:
            if self._channel is None:
                self._channel = self._acquire()
            return self._channel

    @property
    def acquired(self) -> bool:
        return self._channel is not None

    def qualified_name(self, name: str) -> str:
        return qualified_name(name, self.environment)

    def close(self) -> None:
        with self._lock:
            channel, self._channel = self._channel, None
        closer = getattr(channel, "close", None)
        if callable(closer):
            closer()
