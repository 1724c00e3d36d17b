"""Running the collector on its own, without a management platform."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Protocol

from collector_agent.service import RunnableService, ServiceError

_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class CollectorStatus:
    """A status report from the collector."""

    running: bool
    err: BaseException | None = None


class _Collector(Protocol):
    def run(self) -> None: ...

    def stop(self) -> None: ...

    def status(self) -> queue.Queue: ...


class StandaloneCollectorService(RunnableService):
    """Runs a collector and reports when it fails or stops on its own."""

    def __init__(self, collector: _Collector):
        self._collector = collector
        self._done = threading.Event()
        self._errors: queue.Queue = queue.Queue(maxsize=1)
        self._monitor: threading.Thread | None = None

    def start(self) -> None:
        """Start the collector and begin watching its status."""
        try:
            self._collector.run()
        except Exception as exc:
            raise ServiceError(f"failed while starting collector: {exc}") from exc

        self._monitor = threading.Thread(target=self._monitor_status, daemon=True)
        self._monitor.start()

    def _monitor_status(self) -> None:
        statuses = self._collector.status()
        while not self._done.is_set():
            try:
                status = statuses.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            if status is None:
                continue
            if status.err is not None:
                self._report(status.err)
            elif not status.running:
                # A collector that is not running would leave the service a zombie.
                self._report(ServiceError("collector unexpectedly stopped running"))

    def _report(self, err: BaseException) -> None:
        while not self._done.is_set():
            try:
                self._errors.put(err, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def error(self) -> queue.Queue:
        """Return the queue receiving unrecoverable collector errors."""
        return self._errors

    def stop(self, timeout: float | None) -> None:
        """Stop the collector, waiting at most ``timeout`` seconds."""
        self._done.set()

        def _shutdown() -> None:
            self._collector.stop()
            if self._monitor is not None:
                self._monitor.join()

        stopper = threading.Thread(target=_shutdown, daemon=True)
        stopper.start()
        stopper.join(timeout)
        if stopper.is_alive():
            raise ServiceError("failed while waiting for service shutdown") from TimeoutError(
                "service shutdown timed out"
            )