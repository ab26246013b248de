[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "procwarden"
version = "0.1.0"
description = "A small process supervisor with restart limits, a status table, a terminal UI and an HTTP control port"
requires-python = ">=3.10"
keywords = ["supervisor", "process", "daemon", "restart", "monitoring"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Console :: Curses",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "pyyaml",
    "termcolor",
    "urwid",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
procwarden = "procwarden.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["procwarden"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
