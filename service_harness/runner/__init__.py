"""Supervised processes, captured output, and pattern waits."""

from .group import ProcessGroup
from .log_stream import LogBuffer, LogLine, LogStreamReader
from .supervisor import ProcessSpec, ProcessState, SupervisedProcess
from .waiter import compile_pattern, wait_for_line

__all__ = [
    "LogBuffer",
    "LogLine",
    "LogStreamReader",
    "ProcessGroup",
    "ProcessSpec",
    "ProcessState",
    "SupervisedProcess",
    "compile_pattern",
    "wait_for_line",
]
