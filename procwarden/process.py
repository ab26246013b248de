"""Starting, watching, restarting and stopping child processes."""

from __future__ import annotations

import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import IO, Callable, Optional

from procwarden.config import ProcessConfig

Logger = Callable[[str], None]

MAX_RESTARTS = 5
INITIAL_RESTART_DELAY = 1.0
MAX_RESTART_DELAY = 30.0

_POLL_INTERVAL = 0.05
_READER_JOIN_TIMEOUT = 1.0


class Status(str, Enum):
    """Lifecycle state of a supervised process."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass
class ProcessInfo:
    """Snapshot of a process's state."""

    status: Status
    pid: int = 0
    start_time: Optional[datetime] = None
    restarts: int = 0
    exit_error: Optional[str] = None


class ProcessError(Exception):
    """Raised when a process cannot be started or stopped."""


def _platform_options() -> dict:
    if os.name == "nt":
        return {
            "creationflags": subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW
        }
    return {}


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        description = signal.strsignal(-returncode) or str(-returncode)
        return f"signal: {description[:1].lower()}{description[1:]}"
    return f"exit status {returncode}"


def _format_delay(seconds: float) -> str:
    return f"{round(seconds, 3):g}s"


class Process:
    """One supervised process and the thread that runs it."""

    def __init__(self, config: ProcessConfig, logger: Optional[Logger] = None) -> None:
        self.name = config.name
        self.config = config
        self.status = Status.STOPPED
        self.logger = logger
        self.restart = config.autorestart == "always"
        self._lock = threading.Lock()
        self._quit = threading.Event()
        self._generation = 0
        self._pid = 0
        self._start_time: Optional[datetime] = None
        self._restart_count = 0
        self._exit_error: Optional[str] = None

    def info(self) -> ProcessInfo:
        with self._lock:
            return ProcessInfo(
                status=self.status,
                pid=self._pid,
                start_time=self._start_time,
                restarts=self._restart_count,
                exit_error=self._exit_error,
            )

    def _emit(self, message: str) -> None:
        logger = self.logger
        if logger is not None:
            logger(message)

    def _log(self, message: str) -> None:
        self._emit(f"[{self.name}] {message}")

    def _launch(self) -> None:
        """Begin a new run; the caller holds the lock."""
        self.status = Status.STARTING
        self._exit_error = None
        self._restart_count = 0
        self._quit.set()
        self._quit = threading.Event()
        self._generation += 1
        thread = threading.Thread(
            target=self._run,
            args=(self._quit, self._generation),
            name=f"process-{self.name}",
            daemon=True,
        )
        thread.start()

    def _request_stop(self) -> None:
        """Ask the running thread to stop; the caller holds the lock."""
        self.status = Status.STOPPING
        self.restart = False
        self._quit.set()

    def _run(self, quit_event: threading.Event, generation: int) -> None:
        try:
            self._supervise(quit_event)
        finally:
            with self._lock:
                if self._generation == generation:
                    self.status = Status.STOPPED

    def _read_stream(self, stream: IO[bytes], pid: int, tag: str) -> None:
        with stream:
            for raw in stream:
                text = raw.decode(errors="replace").rstrip("\r\n")
                self._emit(f"[{self.name}][{pid}]{tag} {text}")

    def _spawn(self) -> Optional[subprocess.Popen]:
        cfg = self.config
        env = {**os.environ, **cfg.environment}
        try:
            popen = subprocess.Popen(
                [cfg.command, *cfg.args],
                cwd=cfg.directory or None,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                **_platform_options(),
            )
        except OSError as exc:
            with self._lock:
                self._pid = 0
                self.status = Status.FAILED
                self._exit_error = f"start failed: {exc}"
            self._emit(f"[ERROR] Process {self.name} failed to start: {exc}")
            return None
        return popen

    def _shutdown(self, popen: subprocess.Popen) -> None:
        self._emit("[DEBUG] Received stop signal")
        popen.kill()
        self._log(f"[INFO] Stopping process: {self.name} (PID: {popen.pid})")
        try:
            popen.wait(timeout=self.config.stop_wait)
            self._emit("[DEBUG] Process stopped gracefully")
        except subprocess.TimeoutExpired:
            self._log("[WARN] Force killing process after timeout")
            popen.kill()
            popen.wait()

    def _supervise(self, quit_event: threading.Event) -> None:
        cfg = self.config
        while True:
            with self._lock:
                self.status = Status.STARTING
                self._start_time = datetime.now()
            delay = INITIAL_RESTART_DELAY

            self._emit(f"[INFO] Starting process: {cfg.command} [{' '.join(cfg.args)}]")
            popen = self._spawn()
            if popen is None:
                return
            pid = popen.pid
            self._emit(f"[INFO] Process {self.name} started with PID: {pid}")
            with self._lock:
                self._pid = pid
                self.status = Status.RUNNING

            readers = [
                threading.Thread(target=self._read_stream, args=(popen.stdout, pid, ""), daemon=True),
                threading.Thread(
                    target=self._read_stream, args=(popen.stderr, pid, "[ERROR]"), daemon=True
                ),
            ]
            for reader in readers:
                reader.start()

            returncode = None
            while returncode is None:
                if quit_event.wait(_POLL_INTERVAL):
                    self._shutdown(popen)
                    for reader in readers:
                        reader.join(_READER_JOIN_TIMEOUT)
                    return
                returncode = popen.poll()

            for reader in readers:
                reader.join(_READER_JOIN_TIMEOUT)

            if returncode != 0:
                description = _describe_exit(returncode)
                with self._lock:
                    self.status = Status.FAILED
                    self._exit_error = f"exit error: {description}"
                self._emit(
                    f"[ERROR] Process {self.name} (PID: {pid}) exited with error: {description}"
                )
            else:
                with self._lock:
                    self.status = Status.STOPPED
                self._emit(f"[INFO] Process {self.name} (PID: {pid}) exited normally")

            with self._lock:
                restart = self.restart
                count = self._restart_count
            if not restart:
                return

            if count >= MAX_RESTARTS:
                with self._lock:
                    self.status = Status.FAILED
                    self.restart = False
                self._emit(
                    f"[WARN] Process {self.name} reached max restarts ({MAX_RESTARTS}), stopping"
                )
                return

            delay = min(delay * 1.5, MAX_RESTART_DELAY)
            self._emit(
                f"[INFO] Restarting process: {self.name} in {_format_delay(delay)} "
                f"(attempt {count + 1}/{MAX_RESTARTS})"
            )
            if quit_event.wait(delay):
                return

            with self._lock:
                self._restart_count += 1


class Manager:
    """Holds the supervised processes by name."""

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self._processes: dict[str, Process] = {}
        self._lock = threading.RLock()
        self._logger = logger

    def set_logger(self, logger: Optional[Logger]) -> None:
        """Replace the logger for the manager and every process."""
        with self._lock:
            self._logger = logger
            for proc in self._processes.values():
                with proc._lock:
                    proc.logger = logger

    def add_process(self, cfg: ProcessConfig) -> None:
        """Register a process, replacing any with the same name."""
        with self._lock:
            self._processes[cfg.name] = Process(cfg, self._logger)

    def _get(self, name: str) -> Process:
        with self._lock:
            try:
                return self._processes[name]
            except KeyError:
                raise ProcessError(f"process not found: {name}") from None

    def start(self, name: str) -> None:
        """Start a stopped or failed process."""
        proc = self._get(name)
        with proc._lock:
            if proc.status not in (Status.STOPPED, Status.FAILED):
                raise ProcessError(f"process is already running: {name}")
            proc._launch()

    def start_all(self) -> None:
        """Start every autostart process; raise the first failure after trying all."""
        with self._lock:
            processes = list(self._processes.values())
            logger = self._logger
        errors: list[ProcessError] = []
        for proc in processes:
            if not proc.config.autostart:
                continue
            try:
                self.start(proc.name)
            except ProcessError as exc:
                errors.append(exc)
                if logger is not None:
                    logger(f"[ERROR] Failed to autostart process {proc.name}: {exc}")
        if errors:
            raise errors[0]

    def stop(self, name: str) -> None:
        """Stop a running or starting process."""
        proc = self._get(name)
        with proc._lock:
            if proc.status not in (Status.RUNNING, Status.STARTING):
                raise ProcessError(f"process is not running: {name}")
            proc._request_stop()

    def stop_all(self) -> None:
        """Ask every running or starting process to stop."""
        with self._lock:
            processes = list(self._processes.values())
        for proc in processes:
            with proc._lock:
                if proc.status in (Status.RUNNING, Status.STARTING):
                    proc._request_stop()

    def status(self) -> dict[str, ProcessInfo]:
        """Return a snapshot of every process keyed by name."""
        with self._lock:
            processes = dict(self._processes)
        return {name: proc.info() for name, proc in processes.items()}