"""Command-line entry point: run, inspect and control supervised processes."""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import os
import signal
import sys
import threading
import time
from dataclasses import asdict
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Iterator, Optional, Sequence

import yaml

from procwarden import config as config_module
from procwarden.api import Server
from procwarden.config import Config
from procwarden.process import ProcessError, Status
from procwarden.service import SupervisorService, as_service
from procwarden.supervisor import Supervisor

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "gsv.yaml"

DEFAULT_CONFIG = """processes:
  - name: "example-process"
    command: "cmd.exe"
    args: ["/c", "echo Hello World && timeout /t 30 /nobreak"]
    autostart: true
    autorestart: "always"
    stop_signal: "SIGKILL"
    stop_wait: 5s

  - name: "ping-test"
    command: "ping"
    args: ["localhost", "-n", "30"]
    autostart: true
    autorestart: "always"
"""

_STARTUP_PAUSE = 0.5
_STATUS_INTERVAL = 5.0
_FOREGROUND_CHECK = 1.0
_SIGNAL_POLL = 0.1


def ensure_config_exists(path: str | os.PathLike[str]) -> None:
    """Write the default configuration to ``path`` if no file is there."""
    if os.path.exists(path):
        return
    try:
        with open(path, "w", encoding="utf-8") as handle:
            handle.write(DEFAULT_CONFIG)
    except OSError as exc:
        raise OSError(f"failed to create default config: {exc}") from exc
    log.info("[INFO] Created default config at %s", path)


def list_all_processes(config: Config) -> None:
    """Print every configured process with its command and restart policy."""
    print("\nConfigured processes:")
    for number, proc in enumerate(config.processes, start=1):
        print(f"{number}. {proc.name}")
        print(f"   Command: {proc.command} {' '.join(proc.args)}")
        print(f"   Autostart: {str(proc.autostart).lower()}, Autorestart: {proc.autorestart}")
        print()


def _fatal(message: str) -> int:
    print(f"[ERROR] {message}", file=sys.stderr)
    return 1


@contextlib.contextmanager
def _catch_signals(*signums: int) -> Iterator[list[int]]:
    """Collect the given signals into a list while the block runs."""
    received: list[int] = []
    if threading.current_thread() is not threading.main_thread():
        yield received
        return

    def _handler(signum, _frame) -> None:
        received.append(signum)

    previous = {signum: signal.signal(signum, _handler) for signum in signums}
    try:
        yield received
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def _handler_for(server: Server) -> type[BaseHTTPRequestHandler]:
    actions: dict[str, Callable[[str], object]] = {
        "start": server.start_process,
        "stop": server.stop_process,
        "restart": server.restart_process,
    }

    class _ControlHandler(BaseHTTPRequestHandler):
        def _reply(self, code: int, payload: object) -> None:
            body = json.dumps(payload).encode()
            self.send_response(code)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def do_GET(self) -> None:
            if self.path.rstrip("/") == "/status":
                self._reply(200, asdict(server.get_status()))
            else:
                self._reply(404, {"success": False, "message": "not found"})

        def do_POST(self) -> None:
            parts = self.path.strip("/").split("/", 1)
            action = actions.get(parts[0]) if len(parts) == 2 and parts[1] else None
            if action is None:
                self._reply(404, {"success": False, "message": "not found"})
                return
            self._reply(200, asdict(action(parts[1])))

        def log_message(self, format: str, *args) -> None:
            log.debug(format, *args)

    return _ControlHandler


def _serve_control(service: SupervisorService, port: str) -> None:
    try:
        httpd = ThreadingHTTPServer(("", int(port)), _handler_for(Server(service)))
    except (OSError, ValueError) as exc:
        log.error("failed to listen: %s", exc)
        return
    log.info("control server listening on :%s", port)
    with httpd:
        httpd.serve_forever()


def _handle_reload(sv: Supervisor, cfg_path: str) -> int:
    print("[INFO] Reloading configuration...")
    try:
        new_cfg = config_module.load(cfg_path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        return _fatal(f"Config reload failed: {exc}")
    sv.reload_config(new_cfg)
    print("[INFO] Configuration reloaded successfully")
    sv.print_status()
    return 0


def _run_process_foreground(sv: Supervisor, name: str) -> int:
    print(f"Running process '{name}' in foreground...")
    marker = f"[{name}]"

    def _logger(message: str) -> None:
        if marker in message:
            print(message)

    sv.set_logger(_logger)
    try:
        sv.start_process(name)
    except ProcessError as exc:
        return _fatal(f"Failed to start process: {exc}")

    with _catch_signals(signal.SIGINT, signal.SIGTERM) as received:
        next_check = time.monotonic() + _FOREGROUND_CHECK
        while True:
            if received:
                print(f"\nStopping process '{name}'...")
                with contextlib.suppress(ProcessError):
                    sv.stop_process(name)
                print("Process stopped")
                return 0
            if time.monotonic() >= next_check:
                next_check += _FOREGROUND_CHECK
                if sv.get_process_status(name) in (Status.STOPPED, Status.FAILED):
                    print("Process completed")
                    return 0
            time.sleep(_SIGNAL_POLL)


def _daemon_loop(sv: Supervisor, cfg_path: str) -> None:
    signums = [signal.SIGINT, signal.SIGTERM]
    sighup = getattr(signal, "SIGHUP", None)
    if sighup is not None:
        signums.append(sighup)

    log.info("Entering daemon mode. Press Ctrl+C to exit.")
    with _catch_signals(*signums) as received:
        next_tick = time.monotonic() + _STATUS_INTERVAL
        while True:
            while received:
                signum = received.pop(0)
                if sighup is not None and signum == sighup:
                    log.info("[INFO] Reloading config...")
                    try:
                        new_cfg = config_module.load(cfg_path)
                    except (OSError, ValueError, yaml.YAMLError) as exc:
                        log.error("[ERROR] Config reload failed: %s", exc)
                        continue
                    sv.reload_config(new_cfg)
                    log.info("[INFO] Config reloaded successfully")
                    sv.print_status()
                else:
                    log.info("[INFO] Received %s, shutting down...", signal.Signals(signum).name)
                    sv.stop_all()
                    log.info("[INFO] Supervisor stopped")
                    return
            if time.monotonic() >= next_tick:
                next_tick += _STATUS_INTERVAL
                sv.print_status()
            time.sleep(_SIGNAL_POLL)


def _run_supervisor(sv: Supervisor, tui_mode: bool, cfg_path: str, port: str) -> int:
    try:
        sv.start_all()
    except ProcessError as exc:
        return _fatal(f"Startup failed: {exc}")
    log.info("[INFO] Supervisor started")

    if port:
        log.info("Starting control server on :%s", port)
        threading.Thread(
            target=_serve_control, args=(as_service(sv), port), name="control-server", daemon=True
        ).start()

    time.sleep(_STARTUP_PAUSE)
    sv.print_status()

    if not tui_mode:
        _daemon_loop(sv, cfg_path)
        return 0

    from procwarden.tui import run_tui

    run_tui(sv)
    sv.stop_all()
    log.info("[INFO] Supervisor stopped")
    return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procwarden", description="Supervise a set of processes.", allow_abbrev=False
    )
    parser.add_argument("-c", dest="config", default=DEFAULT_CONFIG_PATH,
                        help="Path to configuration file")
    parser.add_argument("-tui", "--tui", action="store_true", help="Enable terminal UI mode")
    parser.add_argument("-debug", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("-grpc-port", "--grpc-port", "--api-port", dest="port", default="",
                        help="Control server port (empty to disable)")
    parser.add_argument("-start", "--start", default="", help="Start specific process")
    parser.add_argument("-stop", "--stop", default="", help="Stop specific process")
    parser.add_argument("-restart", "--restart", default="", help="Restart specific process")
    parser.add_argument("-run", "--run", default="", help="Run process in foreground mode")
    parser.add_argument("-list", "--list", action="store_true",
                        help="List all configured processes")
    parser.add_argument("-status", "--status", action="store_true", help="Show current status")
    parser.add_argument("-reload", "--reload", action="store_true", help="Reload configuration")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments and run the requested command; return the exit code."""
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    try:
        ensure_config_exists(args.config)
    except OSError as exc:
        return _fatal(str(exc))

    try:
        cfg = config_module.load(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        return _fatal(f"Config load failed: {exc}")

    sv = Supervisor(cfg)
    if args.debug:
        sv.set_logger(print)

    if args.list:
        list_all_processes(cfg)
        return 0
    if args.status:
        sv.print_status()
        return 0
    if args.reload:
        return _handle_reload(sv, args.config)

    commands = (
        (args.start, sv.start_process, "start", "started"),
        (args.stop, sv.stop_process, "stop", "stopped"),
        (args.restart, sv.restart_process, "restart", "restarted"),
    )
    for name, action, verb, done in commands:
        if not name:
            continue
        try:
            action(name)
        except ProcessError as exc:
            return _fatal(f"Failed to {verb} process: {exc}")
        print(f"Process '{name}' {done}")
        sv.print_status()
        return 0

    if args.run:
        return _run_process_foreground(sv, args.run)

    return _run_supervisor(sv, args.tui, args.config, args.port)


if __name__ == "__main__":
    raise SystemExit(main())