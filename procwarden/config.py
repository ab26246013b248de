"""Loading and validation of the supervisor configuration file."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

DEFAULT_STOP_SIGNAL = "SIGTERM"
DEFAULT_STOP_WAIT = 10.0

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_UNITS = "ns|us|µs|μs|ms|s|m|h"
_NUMBER = r"\d+(?:\.\d*)?|\.\d+"
_DURATION_RE = re.compile(rf"[+-]?(?:(?:{_NUMBER})(?:{_UNITS}))+")
_PART_RE = re.compile(rf"({_NUMBER})({_UNITS})")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"5s"`` or ``"1m30s"`` into seconds."""
    if not isinstance(text, str):
        raise TypeError(f"duration must be a string, not {type(text).__name__}")
    if text.lstrip("+-") == "0" and len(text) - len(text.lstrip("+-")) <= 1:
        return 0.0
    if not _DURATION_RE.fullmatch(text):
        raise ValueError(f'time: invalid duration "{text}"')
    sign = -1.0 if text.startswith("-") else 1.0
    total = sum(float(number) * _UNIT_SECONDS[unit] for number, unit in _PART_RE.findall(text))
    return sign * total


@dataclass
class ProcessConfig:
    """How one supervised process is started, restarted and stopped."""

    name: str
    command: str
    args: list[str] = field(default_factory=list)
    directory: str = ""
    environment: dict[str, str] = field(default_factory=dict)
    autostart: bool = False
    autorestart: str = ""
    stop_signal: str = DEFAULT_STOP_SIGNAL
    stop_wait: float = DEFAULT_STOP_WAIT


@dataclass
class Config:
    """The whole configuration: the list of supervised processes."""

    processes: list[ProcessConfig] = field(default_factory=list)


def _to_str(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"{where}: expected a scalar value, got {type(value).__name__}")


def _process_from_mapping(entry: Any, index: int) -> ProcessConfig:
    where = f"processes[{index}]"
    if not isinstance(entry, dict):
        raise ValueError(f"{where}: expected a mapping")

    args_raw = entry.get("args") or []
    if not isinstance(args_raw, list):
        raise ValueError(f"{where}.args: expected a list")
    args = [_to_str(arg, f"{where}.args") for arg in args_raw]

    env_raw = entry.get("env") or {}
    if not isinstance(env_raw, dict):
        raise ValueError(f"{where}.env: expected a mapping")
    environment = {
        _to_str(key, f"{where}.env"): _to_str(value, f"{where}.env") for key, value in env_raw.items()
    }

    autostart = entry.get("autostart")
    if autostart is None:
        autostart = False
    if not isinstance(autostart, bool):
        raise ValueError(f"{where}.autostart: expected a boolean")

    directory = _to_str(entry.get("directory"), f"{where}.directory")
    if directory:
        directory = os.path.abspath(directory)

    stop_signal = _to_str(entry.get("stop_signal"), f"{where}.stop_signal") or DEFAULT_STOP_SIGNAL

    stop_wait_raw = entry.get("stop_wait")
    if stop_wait_raw is None:
        stop_wait = 0.0
    elif isinstance(stop_wait_raw, str):
        stop_wait = parse_duration(stop_wait_raw)
    else:
        raise ValueError(f"{where}.stop_wait: expected a duration string")
    if stop_wait == 0:
        stop_wait = DEFAULT_STOP_WAIT

    return ProcessConfig(
        name=_to_str(entry.get("name"), f"{where}.name"),
        command=_to_str(entry.get("command"), f"{where}.command"),
        args=args,
        directory=directory,
        environment=environment,
        autostart=autostart,
        autorestart=_to_str(entry.get("autorestart"), f"{where}.autorestart"),
        stop_signal=stop_signal,
        stop_wait=stop_wait,
    )


def load(filename: str | os.PathLike[str]) -> Config:
    """Read a YAML configuration file and fill in defaults."""
    with open(filename, encoding="utf-8") as handle:
        data = yaml.safe_load(handle)

    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ValueError("configuration must be a mapping")

    entries = data.get("processes") or []
    if not isinstance(entries, list):
        raise ValueError("processes: expected a list")

    return Config(processes=[_process_from_mapping(entry, i) for i, entry in enumerate(entries)])