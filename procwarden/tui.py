"""A full-screen terminal view of the supervisor."""

from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass
from typing import Mapping

import urwid

from procwarden.process import MAX_RESTARTS, ProcessError, ProcessInfo, Status
from procwarden.supervisor import Supervisor, _uptime

_REFRESH_SECONDS = 1.0
_RESTART_PAUSE = 0.1

_STATUS_COLORS = {
    Status.RUNNING: "green",
    Status.STARTING: "yellow",
    Status.STOPPING: "yellow",
    Status.FAILED: "red",
    Status.STOPPED: "blue",
}

_PALETTE = [
    ("header", "yellow,bold", "black"),
    ("green", "dark green", ""),
    ("yellow", "yellow", ""),
    ("red", "dark red", ""),
    ("blue", "dark blue", ""),
    ("cyan", "dark cyan", ""),
    ("white", "white", ""),
    ("selected", "standout", ""),
]

_COLUMNS = ("Process", "PID", "Status", "Uptime", "Restarts")


@dataclass(frozen=True)
class TableRow:
    """One row of the process table, with the colours of its cells."""

    name: str
    pid: str
    status: str
    uptime: str
    restarts: str
    status_color: str
    restarts_color: str


def build_rows(statuses: Mapping[str, ProcessInfo]) -> list[TableRow]:
    """Turn a status snapshot into table rows."""
    rows = []
    for name, info in statuses.items():
        if info.restarts >= MAX_RESTARTS - 1:
            restarts_color = "yellow"
        elif info.restarts > 0:
            restarts_color = "cyan"
        else:
            restarts_color = "white"
        rows.append(
            TableRow(
                name=name,
                pid=str(info.pid) if info.pid > 0 else "N/A",
                status=info.status.value,
                uptime=_uptime(info),
                restarts=str(info.restarts),
                status_color=_STATUS_COLORS.get(info.status, "white"),
                restarts_color=restarts_color,
            )
        )
    return rows


class _RowWidget(urwid.WidgetWrap):
    def __init__(self, row: TableRow) -> None:
        self.name = row.name
        cells = urwid.Columns(
            [
                urwid.Text(row.name),
                urwid.Text(row.pid),
                urwid.AttrMap(urwid.Text(row.status), row.status_color),
                urwid.Text(row.uptime),
                urwid.AttrMap(urwid.Text(row.restarts), row.restarts_color),
            ],
            dividechars=1,
        )
        super().__init__(cells)

    def selectable(self) -> bool:
        return True

    def keypress(self, size, key):
        return key


def _restart_in_background(supervisor: Supervisor, name: str) -> None:
    def _restart() -> None:
        with contextlib.suppress(ProcessError):
            supervisor.stop_process(name)
        time.sleep(_RESTART_PAUSE)
        with contextlib.suppress(ProcessError):
            supervisor.start_process(name)

    threading.Thread(target=_restart, daemon=True).start()


def run_tui(supervisor: Supervisor) -> None:
    """Show the process table and logs until Ctrl+C is pressed."""
    supervisor.set_logger(supervisor.add_log)

    header = urwid.AttrMap(
        urwid.Columns([urwid.Text(title) for title in _COLUMNS], dividechars=1), "header"
    )
    table_walker = urwid.SimpleFocusListWalker([])
    table = urwid.ListBox(table_walker)
    log_walker = urwid.SimpleFocusListWalker([])
    log_view = urwid.ListBox(log_walker)

    pile = urwid.Pile(
        [
            ("weight", 3, urwid.LineBox(urwid.Frame(table, header=header))),
            ("weight", 1, urwid.LineBox(log_view, title="Logs")),
        ]
    )

    def refresh() -> None:
        rows = build_rows(supervisor.status())
        focus = table_walker.focus if len(table_walker) else 0
        table_walker[:] = [urwid.AttrMap(_RowWidget(row), None, focus_map="selected") for row in rows]
        if rows:
            table_walker.set_focus(min(focus or 0, len(rows) - 1))
        log_walker[:] = [urwid.Text(line) for line in supervisor.logs()]
        if len(log_walker):
            log_walker.set_focus(len(log_walker) - 1)

    def tick(loop, _data) -> None:
        refresh()
        loop.set_alarm_in(_REFRESH_SECONDS, tick)

    def handle_input(key) -> None:
        if key == "ctrl c":
            raise urwid.ExitMainLoop()
        if key == "tab":
            pile.focus_position = 1 - pile.focus_position
        elif key in ("r", "R"):
            selected = table.focus
            if selected is not None:
                _restart_in_background(supervisor, selected.original_widget.name)

    refresh()
    loop = urwid.MainLoop(pile, _PALETTE, unhandled_input=handle_input)
    loop.set_alarm_in(_REFRESH_SECONDS, tick)
    with contextlib.suppress(KeyboardInterrupt):
        loop.run()