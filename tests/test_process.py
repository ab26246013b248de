import os
import sys
import time

import pytest

from procwarden.config import ProcessConfig
from procwarden.process import (
    MAX_RESTARTS,
    Manager,
    ProcessError,
    ProcessInfo,
    Status,
)

ACTIVE = (Status.RUNNING, Status.STARTING, Status.STOPPING)
SLEEP_ARGS = ["-c", "import time; time.sleep(30)"]


def _wait_for(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def _python(name, code, **kwargs):
    return ProcessConfig(name=name, command=sys.executable, args=["-c", code], **kwargs)


@pytest.fixture
def logs():
    return []


@pytest.fixture
def manager(logs):
    m = Manager(logs.append)
    yield m
    m.stop_all()
    _wait_for(lambda: all(info.status not in ACTIVE for info in m.status().values()))


def _status(manager, name):
    return manager.status()[name].status


def test_status_values(manager):
    manager.add_process(_python("idle", "pass"))
    status = _status(manager, "idle")
    assert status is Status("stopped")
    assert str(status) == "stopped"
    assert [s.value for s in Status] == ["stopped", "starting", "running", "stopping", "failed"]


def test_added_process_is_stopped(manager):
    manager.add_process(_python("idle", "pass"))
    assert manager.status() == {"idle": ProcessInfo(status=Status.STOPPED)}


def test_start_unknown_process(manager):
    with pytest.raises(ProcessError, match="process not found: ghost"):
        manager.start("ghost")


def test_stop_unknown_process(manager):
    with pytest.raises(ProcessError, match="process not found: ghost"):
        manager.stop("ghost")


def test_stop_idle_process(manager):
    manager.add_process(_python("idle", "pass"))
    with pytest.raises(ProcessError, match="process is not running: idle"):
        manager.stop("idle")


def test_normal_exit(manager, logs):
    manager.add_process(_python("hello", "print('hello')"))
    manager.start("hello")
    assert _wait_for(lambda: any("exited normally" in line for line in logs))
    assert _wait_for(lambda: _status(manager, "hello") == Status.STOPPED)
    info = manager.status()["hello"]
    assert info.exit_error is None
    assert info.restarts == 0
    assert info.pid > 0
    assert f"[hello][{info.pid}] hello" in logs
    assert info.start_time is not None


def test_stderr_lines_are_tagged(manager, logs):
    manager.add_process(_python("err", "import sys; sys.stderr.write('oops\\n')"))
    manager.start("err")
    assert _wait_for(lambda: any("exited normally" in line for line in logs))
    pid = manager.status()["err"].pid
    assert f"[err][{pid}][ERROR] oops" in logs


def test_nonzero_exit_records_error(manager, logs):
    manager.add_process(_python("bad", "raise SystemExit(3)"))
    manager.start("bad")
    assert _wait_for(lambda: manager.status()["bad"].exit_error is not None)
    error = manager.status()["bad"].exit_error
    assert error.startswith("exit error:")
    assert "3" in error
    assert _wait_for(lambda: _status(manager, "bad") == Status.STOPPED)
    assert any("exited with error" in line for line in logs)


def test_start_failure(manager, logs):
    manager.add_process(ProcessConfig(name="missing", command="procwarden-no-such-command-xyz"))
    manager.start("missing")
    assert _wait_for(lambda: manager.status()["missing"].exit_error is not None)
    info = manager.status()["missing"]
    assert info.exit_error.startswith("start failed:")
    assert info.pid == 0
    assert _wait_for(lambda: _status(manager, "missing") == Status.STOPPED)
    assert any(line.startswith("[ERROR] Process missing failed to start:") for line in logs)


def test_environment_is_passed(manager, logs):
    code = "import os; print(os.environ['PROCWARDEN_VALUE'])"
    manager.add_process(_python("env", code, environment={"PROCWARDEN_VALUE": "marker"}))
    manager.start("env")
    assert _wait_for(lambda: any("exited normally" in line for line in logs))
    pid = manager.status()["env"].pid
    assert pid > 0
    assert f"[env][{pid}] marker" in logs


def test_directory_is_used(manager, logs, tmp_path):
    manager.add_process(_python("cwd", "import os; print(os.getcwd())", directory=str(tmp_path)))
    manager.start("cwd")
    assert _wait_for(lambda: any("exited normally" in line for line in logs))
    pid = manager.status()["cwd"].pid
    prefix = f"[cwd][{pid}] "
    printed = [line[len(prefix):] for line in logs if line.startswith(prefix)]
    assert [os.path.realpath(p) for p in printed] == [os.path.realpath(tmp_path)]


def test_stop_running_process(manager, logs):
    manager.add_process(ProcessConfig(name="sleeper", command=sys.executable, args=SLEEP_ARGS))
    manager.start("sleeper")
    assert _wait_for(lambda: _status(manager, "sleeper") == Status.RUNNING)
    pid = manager.status()["sleeper"].pid
    manager.stop("sleeper")
    assert _wait_for(lambda: _status(manager, "sleeper") == Status.STOPPED)
    assert "[DEBUG] Received stop signal" in logs
    assert f"[sleeper] [INFO] Stopping process: sleeper (PID: {pid})" in logs
    with pytest.raises(ProcessError, match="process is not running"):
        manager.stop("sleeper")


def test_start_twice_is_rejected(manager):
    manager.add_process(ProcessConfig(name="sleeper", command=sys.executable, args=SLEEP_ARGS))
    manager.start("sleeper")
    with pytest.raises(ProcessError, match="process is already running: sleeper"):
        manager.start("sleeper")


def test_start_all_only_autostart(manager):
    manager.add_process(
        ProcessConfig(name="a", command=sys.executable, args=SLEEP_ARGS, autostart=True)
    )
    manager.add_process(ProcessConfig(name="b", command=sys.executable, args=SLEEP_ARGS))
    manager.start_all()
    statuses = manager.status()
    assert statuses["a"].status in (Status.STARTING, Status.RUNNING)
    assert statuses["b"].status == Status.STOPPED


def test_start_all_raises_first_error(manager, logs):
    manager.add_process(
        ProcessConfig(name="a", command=sys.executable, args=SLEEP_ARGS, autostart=True)
    )
    manager.start("a")
    with pytest.raises(ProcessError, match="process is already running: a"):
        manager.start_all()
    assert any(line.startswith("[ERROR] Failed to autostart process a:") for line in logs)


def test_stop_all(manager):
    for name in ("one", "two"):
        manager.add_process(ProcessConfig(name=name, command=sys.executable, args=SLEEP_ARGS))
        manager.start(name)
    assert _wait_for(
        lambda: all(info.status == Status.RUNNING for info in manager.status().values())
    )
    manager.stop_all()
    _wait_for(lambda: all(info.status == Status.STOPPED for info in manager.status().values()))
    statuses = {name: info.status for name, info in manager.status().items()}
    assert statuses == {"one": Status.STOPPED, "two": Status.STOPPED}


def test_set_logger_reaches_existing_processes(manager, logs):
    manager.add_process(_python("hello", "print('hi')"))
    other = []
    manager.set_logger(other.append)
    manager.start("hello")
    assert _wait_for(lambda: any("exited normally" in line for line in other))
    pid = manager.status()["hello"].pid
    assert f"[hello][{pid}] hi" in other
    assert logs == []


def test_autorestart_always_restarts(manager, logs):
    manager.add_process(_python("flappy", "pass", autorestart="always"))
    manager.start("flappy")
    assert _wait_for(lambda: manager.status()["flappy"].restarts >= 1)
    assert "[INFO] Restarting process: flappy in 1.5s (attempt 1/5)" in logs
    assert manager.status()["flappy"].restarts <= MAX_RESTARTS


def test_no_restart_without_autorestart(manager, logs):
    manager.add_process(_python("once", "pass"))
    manager.start("once")
    assert _wait_for(lambda: any("exited normally" in line for line in logs))
    _wait_for(lambda: _status(manager, "once") == Status.STOPPED)
    info = manager.status()["once"]
    assert info.status == Status.STOPPED
    assert info.restarts == 0
    assert not any("Restarting process" in line for line in logs)