"""Handling of Windows service control requests for a runnable service."""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

from collector_agent.service import STOP_TIMEOUT, RunnableService

STATUS_CODE_INVALID_SERVICE_COMMAND = 1052
STATUS_CODE_SERVICE_EXCEPTION = 1064
STATUS_CODE_INVALID_SERVICE_NAME = 1213

ACCEPT_STOP = 0x1
ACCEPT_SHUTDOWN = 0x4

_POLL_INTERVAL = 0.05


class ServiceState(IntEnum):
    """State of a service as reported to the service manager."""

    STOPPED = 1
    START_PENDING = 2
    STOP_PENDING = 3
    RUNNING = 4
    CONTINUE_PENDING = 5
    PAUSE_PENDING = 6
    PAUSED = 7


class ServiceCommand(IntEnum):
    """Control commands the service manager may send."""

    STOP = 1
    PAUSE = 2
    CONTINUE = 3
    INTERROGATE = 4
    SHUTDOWN = 5
    PARAM_CHANGE = 6
    NET_BIND_ADD = 7
    NET_BIND_REMOVE = 8
    NET_BIND_ENABLE = 9
    NET_BIND_DISABLE = 10
    DEVICE_EVENT = 11
    HARDWARE_PROFILE_CHANGE = 12
    POWER_EVENT = 13
    SESSION_CHANGE = 14
    PRE_SHUTDOWN = 15


@dataclass(frozen=True)
class ServiceStatus:
    """A status report sent to the service manager."""

    state: ServiceState
    accepts: int = 0


@dataclass(frozen=True)
class ChangeRequest:
    """A control request received from the service manager."""

    cmd: ServiceCommand
    current_status: ServiceStatus | None = None


class WindowsServiceHandler:
    """Drives a RunnableService from service manager control requests."""

    def __init__(self, logger: logging.Logger, svc: RunnableService):
        self._logger = logger
        self._svc = svc

    def execute(
        self, args: Sequence[str], requests: queue.Queue, statuses: queue.Queue
    ) -> tuple[bool, int]:
        """Run the service event loop; return (service specific, exit code)."""
        if not args:
            # The service name comes first and is needed to open the event log.
            return False, STATUS_CODE_INVALID_SERVICE_NAME

        statuses.put(ServiceStatus(ServiceState.START_PENDING))

        try:
            self._svc.start()
        except Exception:
            self._logger.exception("Failed to start service")
            return False, STATUS_CODE_SERVICE_EXCEPTION

        statuses.put(ServiceStatus(ServiceState.RUNNING, ACCEPT_STOP | ACCEPT_SHUTDOWN))
        errors = self._svc.error()

        while True:
            try:
                req = requests.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                try:
                    err = errors.get_nowait()
                except queue.Empty:
                    continue
                self._logger.error("Got unexpected service error: %s", err)
                try:
                    self._shutdown(statuses)
                except Exception:
                    self._logger.exception("Failed during service shutdown")
                return False, STATUS_CODE_SERVICE_EXCEPTION

            if req.cmd == ServiceCommand.INTERROGATE:
                statuses.put(req.current_status)
                continue

            if req.cmd in (ServiceCommand.STOP, ServiceCommand.SHUTDOWN):
                code = 0
            else:
                self._logger.error("Got unexpected service command: %d", int(req.cmd))
                code = STATUS_CODE_INVALID_SERVICE_COMMAND

            try:
                self._shutdown(statuses)
            except Exception:
                self._logger.exception("Failed during service shutdown")
                return False, STATUS_CODE_SERVICE_EXCEPTION
            return False, code

    def _shutdown(self, statuses: queue.Queue) -> None:
        statuses.put(ServiceStatus(ServiceState.STOP_PENDING))
        try:
            self._svc.stop(STOP_TIMEOUT)
        finally:
            statuses.put(ServiceStatus(ServiceState.STOPPED))