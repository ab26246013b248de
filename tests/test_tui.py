import re
from datetime import datetime, timedelta

from procwarden.process import MAX_RESTARTS, ProcessInfo, Status
from procwarden.tui import build_rows


def test_build_rows_not_started():
    rows = build_rows({"idle": ProcessInfo(status=Status.STOPPED)})
    assert len(rows) == 1
    row = rows[0]
    assert row.name == "idle"
    assert row.pid == "N/A"
    assert row.uptime == "N/A"
    assert row.status == "stopped"
    assert row.status_color == "blue"
    assert row.restarts == "0"
    assert row.restarts_color == "white"


def test_build_rows_running_process():
    info = ProcessInfo(
        status=Status.RUNNING,
        pid=4321,
        start_time=datetime.now() - timedelta(seconds=5),
        restarts=1,
    )
    row = build_rows({"web": info})[0]
    assert row.pid == "4321"
    assert row.status == "running"
    assert row.status_color == "green"
    assert re.fullmatch(r"00m0\ds", row.uptime)
    assert row.restarts_color == "cyan"


def test_build_rows_status_colors():
    statuses = {
        "a": ProcessInfo(status=Status.STARTING),
        "b": ProcessInfo(status=Status.STOPPING),
        "c": ProcessInfo(status=Status.FAILED),
    }
    colors = {row.name: row.status_color for row in build_rows(statuses)}
    assert colors == {"a": "yellow", "b": "yellow", "c": "red"}


def test_build_rows_restarts_near_limit():
    statuses = {
        "near": ProcessInfo(status=Status.FAILED, restarts=MAX_RESTARTS - 1),
        "max": ProcessInfo(status=Status.FAILED, restarts=MAX_RESTARTS),
    }
    rows = build_rows(statuses)
    assert [row.restarts_color for row in rows] == ["yellow", "yellow"]
    assert [row.restarts for row in rows] == [str(MAX_RESTARTS - 1), str(MAX_RESTARTS)]


def test_build_rows_keeps_order():
    statuses = {name: ProcessInfo(status=Status.STOPPED) for name in ("z", "a", "m")}
    assert [row.name for row in build_rows(statuses)] == ["z", "a", "m"]


def test_build_rows_empty():
    assert build_rows({}) == []