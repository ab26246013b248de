"""The supervisor: a manager of processes plus status reporting and logs."""

from __future__ import annotations

import contextlib
import signal
import threading
import time
from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from termcolor import colored

from procwarden.config import Config
from procwarden.process import MAX_RESTARTS, Manager, ProcessError, ProcessInfo, Status

_LOG_LIMIT = 1000
_RESTART_PAUSE = 0.1
_DAEMON_POLL = 0.5

_STATUS_COLORS = {
    Status.RUNNING: "green",
    Status.STARTING: "yellow",
    Status.STOPPING: "yellow",
    Status.FAILED: "red",
    Status.STOPPED: "blue",
}


def format_uptime(seconds: Union[float, timedelta]) -> str:
    """Format an elapsed time as ``HHhMMm`` or, under an hour, ``MMmSSs``."""
    if isinstance(seconds, timedelta):
        seconds = seconds.total_seconds()
    total = int(seconds + 0.5) if seconds >= 0 else -int(-seconds + 0.5)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours:02d}h{minutes:02d}m"
    return f"{minutes:02d}m{secs:02d}s"


def _uptime(info: ProcessInfo) -> str:
    if info.start_time is None:
        return "N/A"
    return format_uptime(datetime.now() - info.start_time)


class Supervisor:
    """Runs the configured processes and keeps a bounded log of their output."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._manager = Manager(lambda message: None)
        for pcfg in config.processes:
            self._manager.add_process(pcfg)
        self._logs: deque[str] = deque(maxlen=_LOG_LIMIT + 1)
        self._log_lock = threading.Lock()

    @property
    def manager(self) -> Manager:
        return self._manager

    def set_logger(self, logger: Optional[Callable[[str], None]]) -> None:
        """Send the output of every process to ``logger``."""
        self._manager.set_logger(logger)

    def add_log(self, message: str) -> None:
        """Append a message to the bounded in-memory log."""
        with self._log_lock:
            self._logs.append(message)

    def logs(self) -> list[str]:
        """Return a copy of the stored log messages, oldest first."""
        with self._log_lock:
            return list(self._logs)

    def start_all(self) -> None:
        self._manager.start_all()

    def start_process(self, name: str) -> None:
        self._manager.start(name)

    def stop_all(self) -> None:
        self._manager.stop_all()

    def stop_process(self, name: str) -> None:
        self._manager.stop(name)

    def restart_process(self, name: str) -> None:
        """Stop a running process and start it again."""
        self._manager.stop(name)
        time.sleep(_RESTART_PAUSE)
        self._manager.start(name)

    def reload_config(self, new_config: Config) -> None:
        """Stop everything, replace the configuration and autostart anew."""
        self.stop_all()
        self.config = new_config
        self._manager = Manager(self.add_log)
        for pcfg in new_config.processes:
            self._manager.add_process(pcfg)
        with contextlib.suppress(ProcessError):
            self.start_all()

    def status(self) -> dict[str, ProcessInfo]:
        return self._manager.status()

    def get_process_status(self, name: str) -> Status:
        """Return the status of ``name``, or stopped if it is unknown."""
        info = self.status().get(name)
        return info.status if info is not None else Status.STOPPED

    def render_status(self) -> str:
        """Return the status table as printable, coloured text."""
        statuses = self.status()
        name_width = max([8, *(len(name) for name in statuses)])
        pid_width = max([3, *(len(str(info.pid)) for info in statuses.values() if info.pid > 0)])
        rule = "-" * (name_width + pid_width + 35)
        now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        lines = [
            "",
            colored(f"PROCESS SUPERVISOR STATUS - {now}", "magenta", attrs=["bold"]),
            rule,
            " | ".join(
                [
                    colored(f"{'Process':<{name_width}}", "cyan"),
                    colored(f"{'PID':<{pid_width}}", "cyan"),
                    colored(f"{'Status':<8}", "cyan"),
                    colored(f"{'Uptime':<8}", "cyan"),
                    colored(f"{'Restarts':<7}", "cyan"),
                ]
            ),
            rule,
        ]

        running = failed = active = 0
        for name, info in statuses.items():
            pid = str(info.pid) if info.pid > 0 else "N/A"
            if info.status is Status.RUNNING:
                running += 1
                active += 1
            elif info.status in (Status.STARTING, Status.STOPPING):
                active += 1
            elif info.status is Status.FAILED:
                failed += 1
            status_text = colored(f"{info.status.value:<8}", _STATUS_COLORS.get(info.status, "cyan"))

            restarts = f"{info.restarts:<7}"
            if info.restarts >= MAX_RESTARTS - 1:
                restarts = colored(restarts, "yellow")
            elif info.restarts > 0:
                restarts = colored(restarts, "cyan")

            lines.append(
                " | ".join(
                    [
                        f"{name:<{name_width}}",
                        f"{pid:<{pid_width}}",
                        status_text,
                        f"{_uptime(info):<8}",
                        restarts,
                    ]
                )
            )
            if info.status is Status.FAILED and info.exit_error:
                lines.append(f"  └─ {colored(info.exit_error, 'red')}")

        lines.append(rule)
        lines.append(
            " | ".join(
                [
                    f"Processes: {len(statuses)}",
                    colored(f"Running: {running}", "green"),
                    colored(f"Failed: {failed}", "red"),
                    colored(f"Active: {active}", "yellow"),
                    colored(f"Max restarts: {MAX_RESTARTS}", "cyan"),
                ]
            )
        )
        lines.append("")
        return "\n".join(lines)

    def print_status(self) -> None:
        print(self.render_status())

    def run_daemon(self) -> None:
        """Start autostart processes and run until SIGINT or SIGTERM."""
        self.start_all()
        stop = threading.Event()

        def _handler(signum, frame) -> None:
            stop.set()

        previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
        try:
            while not stop.wait(_DAEMON_POLL):
                pass
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)
        self.stop_all()