"""Remote-control request handlers over a supervisor service."""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field

from procwarden.process import ProcessError
from procwarden.service import SupervisorService

_START_PAUSE = 0.1


@dataclass
class Response:
    """Outcome of a control request."""

    success: bool
    message: str


@dataclass
class ProcessStatusMessage:
    """Status of one process as reported to a remote client."""

    name: str
    status: str
    pid: int
    restarts: int
    error: str = ""


@dataclass
class StatusResponse:
    """Status of every supervised process."""

    processes: list[ProcessStatusMessage] = field(default_factory=list)


class Server:
    """Handles start, stop, restart and status requests."""

    def __init__(self, service: SupervisorService) -> None:
        self.service = service

    def start_process(self, name: str) -> Response:
        """Start a process, stopping it first if it is already running."""
        with contextlib.suppress(ProcessError):
            self.service.stop_process(name)
        time.sleep(_START_PAUSE)
        try:
            self.service.start_process(name)
        except ProcessError as exc:
            return Response(success=False, message=str(exc))
        return Response(success=True, message="Process started")

    def stop_process(self, name: str) -> Response:
        try:
            self.service.stop_process(name)
        except ProcessError as exc:
            return Response(success=False, message=str(exc))
        return Response(success=True, message="Process stopped")

    def restart_process(self, name: str) -> Response:
        try:
            self.service.restart_process(name)
        except ProcessError as exc:
            return Response(success=False, message=str(exc))
        return Response(success=True, message="Process restarted")

    def get_status(self) -> StatusResponse:
        return StatusResponse(
            processes=[
                ProcessStatusMessage(
                    name=name,
                    status=info.status.value,
                    pid=info.pid,
                    restarts=info.restarts,
                    error=info.exit_error or "",
                )
                for name, info in self.service.status().items()
            ]
        )