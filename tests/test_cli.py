import sys

import pytest
import yaml

from procwarden import config as config_module
from procwarden.cli import ensure_config_exists, list_all_processes, main
from procwarden.config import Config, ProcessConfig


def _write_config(path, processes):
    path.write_text(yaml.safe_dump({"processes": processes}), encoding="utf-8")
    return str(path)


def test_ensure_config_creates_loadable_default(tmp_path):
    path = tmp_path / "gsv.yaml"
    ensure_config_exists(path)
    loaded = config_module.load(path)
    assert [p.name for p in loaded.processes] == ["example-process", "ping-test"]
    assert loaded.processes[0].stop_signal == "SIGKILL"
    assert loaded.processes[0].stop_wait == 5.0
    assert loaded.processes[1].stop_signal == "SIGTERM"
    assert all(p.autostart for p in loaded.processes)


def test_ensure_config_keeps_existing_file(tmp_path):
    path = tmp_path / "gsv.yaml"
    path.write_text("processes: []\n", encoding="utf-8")
    ensure_config_exists(path)
    assert path.read_text(encoding="utf-8") == "processes: []\n"


def test_ensure_config_reports_write_failure(tmp_path):
    path = tmp_path / "missing-dir" / "gsv.yaml"
    with pytest.raises(OSError, match="failed to create default config"):
        ensure_config_exists(path)


def test_list_all_processes_output(capsys):
    cfg = Config(
        processes=[
            ProcessConfig(
                name="web",
                command="python",
                args=["-m", "http.server"],
                autostart=True,
                autorestart="always",
            ),
            ProcessConfig(name="job", command="worker"),
        ]
    )
    list_all_processes(cfg)
    out = capsys.readouterr().out
    assert "Configured processes:" in out
    assert "1. web\n   Command: python -m http.server\n" in out
    assert "   Autostart: true, Autorestart: always" in out
    assert "2. job" in out
    assert "   Autostart: false, Autorestart: " in out


def test_main_list_creates_default_config(tmp_path, capsys):
    path = tmp_path / "gsv.yaml"
    assert main(["-c", str(path), "--list"]) == 0
    assert path.exists()
    out = capsys.readouterr().out
    assert "1. example-process" in out
    assert "2. ping-test" in out


def test_main_accepts_single_dash_long_flags(tmp_path, capsys):
    path = _write_config(tmp_path / "c.yaml", [{"name": "alpha", "command": "true"}])
    assert main(["-c", path, "-list"]) == 0
    assert "1. alpha" in capsys.readouterr().out


def test_main_status_shows_processes(tmp_path, capsys):
    path = _write_config(tmp_path / "c.yaml", [{"name": "alpha", "command": "true"}])
    assert main(["-c", path, "--status"]) == 0
    out = capsys.readouterr().out
    assert "PROCESS SUPERVISOR STATUS" in out
    assert "alpha" in out
    assert "stopped" in out


def test_main_start_unknown_process_fails(tmp_path, capsys):
    path = _write_config(tmp_path / "c.yaml", [{"name": "alpha", "command": "true"}])
    assert main(["-c", path, "--start", "nope"]) == 1
    assert "process not found: nope" in capsys.readouterr().err


def test_main_stop_idle_process_fails(tmp_path, capsys):
    path = _write_config(tmp_path / "c.yaml", [{"name": "alpha", "command": "true"}])
    assert main(["-c", path, "--stop", "alpha"]) == 1
    assert "process is not running: alpha" in capsys.readouterr().err


def test_main_restart_idle_process_fails(tmp_path, capsys):
    path = _write_config(tmp_path / "c.yaml", [{"name": "alpha", "command": "true"}])
    assert main(["-c", path, "--restart", "alpha"]) == 1
    assert "Failed to restart process: process is not running: alpha" in capsys.readouterr().err


def test_main_bad_config_fails(tmp_path, capsys):
    path = tmp_path / "c.yaml"
    path.write_text("processes: 5\n", encoding="utf-8")
    assert main(["-c", str(path), "--list"]) == 1
    assert "Config load failed" in capsys.readouterr().err


def test_main_run_foreground_until_completion(tmp_path, capsys):
    path = _write_config(
        tmp_path / "c.yaml",
        [{"name": "echo", "command": sys.executable, "args": ["-c", "print('hello')"]}],
    )
    assert main(["-c", path, "--run", "echo"]) == 0
    out = capsys.readouterr().out
    assert "Running process 'echo' in foreground..." in out
    assert "[echo][" in out
    assert "hello" in out
    assert out.rstrip().endswith("Process completed")


def test_main_run_unknown_process_fails(tmp_path, capsys):
    path = _write_config(tmp_path / "c.yaml", [{"name": "alpha", "command": "true"}])
    assert main(["-c", path, "--run", "ghost"]) == 1
    assert "process not found: ghost" in capsys.readouterr().err