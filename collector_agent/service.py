"""Running a service until it is told to stop or fails on its own."""

from __future__ import annotations

import abc
import logging
import queue
import signal
import threading

START_TIMEOUT = 10.0
STOP_TIMEOUT = 10.0

_POLL_INTERVAL = 0.05


class ServiceError(Exception):
    """Raised when a service fails to start, stop or keep running."""


class RunnableService(abc.ABC):
    """Something that can be started, stopped and watched for fatal errors."""

    @abc.abstractmethod
    def start(self) -> None:
        """Start the service; it may still be coming up when this returns."""

    @abc.abstractmethod
    def stop(self, timeout: float | None) -> None:
        """Shut the service down completely, giving up after ``timeout`` seconds."""

    @abc.abstractmethod
    def error(self) -> queue.Queue:
        """Return a queue that receives an exception when the service must quit."""


def _wait_for_stop(stop_event: threading.Event, errors: queue.Queue) -> BaseException | None:
    while True:
        try:
            return errors.get(timeout=_POLL_INTERVAL)
        except queue.Empty:
            if stop_event.is_set():
                return None


def run_service_interactive(
    stop_event: threading.Event, logger: logging.Logger, svc: RunnableService
) -> None:
    """Start ``svc``, wait for ``stop_event`` or a service error, then stop it.

    A service error that ended the run is raised after the service was stopped.
    """
    try:
        svc.start()
    except Exception as exc:
        raise ServiceError(f"failed to start service: {exc}") from exc

    svc_err = _wait_for_stop(stop_event, svc.error())
    if svc_err is not None:
        logger.error("Unexpected error while running service: %s", svc_err)

    try:
        svc.stop(STOP_TIMEOUT)
    except Exception as exc:
        raise ServiceError(f"failed to stop service: {exc}") from exc

    if svc_err is not None:
        raise svc_err


def run_service(logger: logging.Logger, svc: RunnableService) -> None:
    """Run ``svc`` until SIGINT or SIGTERM arrives or the service fails."""
    stop_event = threading.Event()

    def _on_signal(signum, frame):
        stop_event.set()

    previous = {}
    if threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, _on_signal)
    try:
        run_service_interactive(stop_event, logger, svc)
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old if old is not None else signal.SIG_DFL)