# procwarden

procwarden keeps a set of configured programs running. It starts them,
captures their standard output and error line by line, restarts them when
they exit (up to five times), and shows their state as a coloured status
table or an interactive terminal UI. An optional HTTP control port lets
other programs start, stop, restart and inspect the processes of a running
supervisor.

## Installation

    pip install procwarden

## Configuration

Processes are described in a YAML file (`gsv.yaml` by default). If the file
does not exist, a sample one is written first; the sample uses `cmd.exe` and
`ping -n`, so edit it on systems other than Windows.

    processes:
      - name: "web"
        command: "python"
        args: ["-m", "http.server", "8000"]
        directory: "./public"
        env:
          LOG_LEVEL: "info"
        autostart: true
        autorestart: "always"
        stop_wait: 5s

- `name`, `command`, `args`: what to run. The command is started directly,
  not through a shell.
- `directory`: working directory; a relative path is made absolute when the
  file is loaded.
- `env`: variables added to the supervisor's own environment.
- `autostart`: start the process when the supervisor starts.
- `autorestart`: only the value `"always"` enables automatic restarts.
- `stop_wait`: a duration such as `5s`, `1m30s` or `250ms`; defaults to `10s`.
- `stop_signal`: read and stored (default `SIGTERM`), but a process is always
  stopped by killing it.

## Restart behaviour

When a process with `autorestart: "always"` exits, procwarden waits 1.5 s
and starts it again. After five restarts it gives up and marks the process
`failed`. A non-zero exit status or a death by signal marks the process
`failed` and records the reason, which the status table shows under the
process.

## Command line

    procwarden                     # start autostart processes, print status every 5 s
    procwarden -c other.yaml       # use another configuration file
    procwarden --tui               # interactive terminal UI
    procwarden --debug             # print every line the processes write
    procwarden --grpc-port 8080    # also serve the HTTP control port (alias: --api-port)
    procwarden --list              # list configured processes
    procwarden --status            # print the status table once
    procwarden --reload            # load the configuration and autostart it once
    procwarden --start NAME        # start one process
    procwarden --stop NAME         # stop one process
    procwarden --restart NAME      # restart one process
    procwarden --run NAME          # run one process in the foreground

The options also accept a single dash (`-tui`, `-list`, ...), as does `-c`.

In daemon mode (no command option), SIGHUP reloads the configuration file:
every process is stopped and the new autostart processes are started.
SIGINT or SIGTERM stops every process and exits.

In the terminal UI, Tab switches between the process table and the log
pane, `r` restarts the selected process, and Ctrl+C quits and stops every
process. The log pane keeps about the last thousand lines.

`--run NAME` starts one process, prints only the lines tagged with its name,
and returns when the process ends or on Ctrl+C.

`--start`, `--stop`, `--restart`, `--status` and `--reload` act on a
supervisor created inside that command and end straight away; they do not
reach a supervisor already running in another process. Use the control
port for that.

## Control port

With `--grpc-port PORT` (or `--api-port PORT`) the daemon listens for plain
HTTP on every interface and answers with JSON:

    GET  /status          -> {"processes": [{"name", "status", "pid", "restarts", "error"}, ...]}
    POST /start/NAME      -> {"success": true, "message": "Process started"}
    POST /stop/NAME       -> {"success": true, "message": "Process stopped"}
    POST /restart/NAME    -> {"success": true, "message": "Process restarted"}

On failure `success` is false and `message` says why. `/start` stops the
process first if it is running. Any other path gets a 404.

## Library use

    from procwarden.config import load
    from procwarden.supervisor import Supervisor

    supervisor = Supervisor(load("gsv.yaml"))
    supervisor.start_all()
    supervisor.print_status()
    supervisor.stop_all()

- `procwarden.config`: `load`, `parse_duration`, `Config`, `ProcessConfig`.
- `procwarden.process`: `Manager`, `Process`, `Status`, `ProcessInfo` and
  `ProcessError`, raised when a process is unknown, already running or not
  running.
- `procwarden.supervisor`: `Supervisor` (start, stop, restart, reload,
  `status`, `render_status`, `print_status`, `run_daemon`, a bounded log via
  `add_log` and `logs`) and `format_uptime`.
- `procwarden.service`: the `SupervisorService` protocol and `as_service`.
- `procwarden.api`: `Server`, whose methods return `Response` and
  `StatusResponse` objects instead of raising.
- `procwarden.tui`: `run_tui` and `build_rows`.

## What it does not do

- There is no client command; talk to the control port with any HTTP client.
- The control port has no authentication or encryption.
- Configured stop signals are not sent; stopping always kills the process.

## Tests

    pip install procwarden[test]
    pytest