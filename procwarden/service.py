"""The operations a remote control interface needs from a supervisor."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from procwarden.process import ProcessInfo


@runtime_checkable
class SupervisorService(Protocol):
    """Start, stop, restart and inspect supervised processes."""

    def start_process(self, name: str) -> None: ...

    def stop_process(self, name: str) -> None: ...

    def restart_process(self, name: str) -> None: ...

    def status(self) -> dict[str, ProcessInfo]: ...


class _SupervisorAdapter:
    """Exposes a supervisor through the service interface."""

    def __init__(self, supervisor: Any) -> None:
        self.supervisor = supervisor

    def start_process(self, name: str) -> None:
        self.supervisor.start_process(name)

    def stop_process(self, name: str) -> None:
        self.supervisor.stop_process(name)

    def restart_process(self, name: str) -> None:
        self.supervisor.restart_process(name)

    def status(self) -> dict[str, ProcessInfo]:
        return self.supervisor.status()


def as_service(supervisor: Any) -> SupervisorService:
    """Wrap a supervisor so it satisfies SupervisorService."""
    return _SupervisorAdapter(supervisor)