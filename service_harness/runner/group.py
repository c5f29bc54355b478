"""Start and stop several cooperating supervised processes together."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from service_harness.runner.supervisor import ProcessState, SupervisedProcess

__all__ = ["ProcessGroup"]

logger = logging.getLogger("service_harness.runner")


class ProcessGroup:
    """Ordered collection of supervised processes.

    Members are started and stopped independently; a failure on one member
    never rolls back the others. Use the group as a context manager (or a
    test fixture finalizer) so ``stop_all`` always runs.
    """

    def __init__(self, processes: Iterable[SupervisedProcess] = ()) -> None:
        self.processes: list[SupervisedProcess] = list(processes)

    def __iter__(self) -> Iterator[SupervisedProcess]:
        return iter(self.processes)

    def __len__(self) -> int:
        return len(self.processes)

    def __getitem__(self, name: str) -> SupervisedProcess:
        for process in self.processes:
            if process.name == name:
                return process
        raise KeyError(name)

    def __enter__(self) -> ProcessGroup:  # noqa: D401 - context manager
        try:
            self.start_all()
            self.wait_start_all()
        except BaseException:
            self.stop_all()
            raise
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop_all()

    def add(self, process: SupervisedProcess) -> SupervisedProcess:
        self.processes.append(process)
        return process

    def start_all(self) -> ProcessGroup:
        for process in self.processes:
            process.start()
        return self

    def wait_start_all(self) -> ProcessGroup:
        for process in self.processes:
            process.wait_start()
        return self

    def stop_all(self) -> ProcessGroup:
        """Stop every member, then re-raise the first failure, if any."""

        first_error: Exception | None = None
        for process in self.processes:
            try:
                process.stop()
            except Exception as exc:  # noqa: BLE001 - keep stopping the rest
                logger.exception("-> %s: stop failed", process.name)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return self

    def wait_stop_all(self) -> ProcessGroup:
        for process in self.processes:
            process.wait_stop()
        return self

    @property
    def idle(self) -> bool:
        return all(process.state is ProcessState.IDLE for process in self.processes)
