# collector-agent

Building blocks for running a telemetry collector as a long-lived service:

- **Version information**: `collector_agent.version` has `version()`,
  `git_hash()` and `date()`, which report the build's version (`"latest"`
  by default), commit hash and build date (`"unknown"` by default).
- **Host information**: `collector_agent.hostinfo` has `hostname()`,
  `name()`, which gives a readable operating-system name such as
  `macOS 11.1` or `Ubuntu 22.04`, and `mac_address()`, which gives the
  hardware address of the first network interface holding a usable IPv4
  address (not loopback, not unspecified), or `"unknown"`.
- **Logging configuration**: `collector_agent.logconfig` reads a YAML file
  that chooses between stdout and a size-rotated log file, and sets the
  level. Log lines are written as JSON.
- **Service lifecycle**: `collector_agent.service`,
  `collector_agent.standalone`, `collector_agent.managed` and
  `collector_agent.winservice` start a service, wait for a stop signal or an
  unexpected error, and shut it down within a time limit (10 seconds).

## Installation

```
pip install collector-agent
```

To run the tests, install the test extra:

```
pip install "collector-agent[test]"
pytest
```

## Logging configuration

```yaml
output: file
level: info
file:
  filename: $LOG_DIR/collector.log
  maxbackups: 5
  maxsize: 1
  maxage: 7
  compress: false
  localtime: false
```

`output` is `stdout` or `file`; `level` is one of `debug`, `info`, `warn`,
`error`, `dpanic`, `panic` or `fatal`. `maxsize` is in megabytes (100 when
left at 0), `maxage` in days. When the file grows past `maxsize` it is moved
to a timestamped backup next to it; old backups are removed beyond
`maxbackups` or after `maxage`, and are gzipped when `compress` is true.

Environment variables (`$NAME` or `${NAME}`) in `filename` are expanded. If
no path is given, or the file does not exist, logging goes to stdout at the
`info` level. An unreadable document, an unknown level or a wrongly typed
value raises `ValueError`, as does an unknown `output` when the handlers are
built.

```python
import logging
from collector_agent.logconfig import new_logger_config

config = new_logger_config("logging.yaml")
config.configure(logging.getLogger("collector"))
```

`LoggerConfig.handlers()` returns the handlers without attaching them, for
use with a logging setup of your own.

## Running a service

Any `RunnableService` (with `start()`, `stop(timeout)` and `error()`, the
last returning a `queue.Queue` that receives an exception when the service
must quit) can be run with `run_service`. It starts the service, waits until
SIGINT or SIGTERM arrives or the service reports an error, and then stops
it. Failures to start or stop raise `ServiceError`; an error the service
reported is raised after it has been stopped. `run_service_interactive`
does the same with a `threading.Event` of your own in place of the signals.

```python
import logging
from collector_agent.service import run_service
from collector_agent.standalone import StandaloneCollectorService

service = StandaloneCollectorService(my_collector)
run_service(logging.getLogger("collector"), service)
```

- `StandaloneCollectorService(collector)` takes an object with `run()`,
  `stop()` and `status()`, the last returning a queue of `CollectorStatus`
  values. It reports an error when the collector fails or stops running on
  its own.
- `ManagedCollectorService(client, logger)` takes an object with
  `connect()` and `disconnect(timeout)` and calls them on start and stop.
  Its error queue never receives anything.
- `WindowsServiceHandler(logger, svc).execute(args, requests, statuses)`
  drives the lifecycle from `ChangeRequest` values read from the `requests`
  queue, puts `ServiceStatus` values on the `statuses` queue, and returns a
  `(service_specific, exit_code)` pair.

## What this package does not do

It has no command to run and no collector of its own: the collector and the
management-platform client are objects you supply. It does not register with
or detect the Windows service manager; `WindowsServiceHandler` only works on
the queues it is given.