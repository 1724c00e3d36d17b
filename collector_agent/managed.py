"""Running the collector under a remote management platform."""

from __future__ import annotations

import logging
import queue
from typing import Protocol

from collector_agent.service import RunnableService, ServiceError


class _Client(Protocol):
    def connect(self) -> None: ...

    def disconnect(self, timeout: float | None) -> None: ...


class ManagedCollectorService(RunnableService):
    """Service whose collector is driven by a management platform client."""

    def __init__(self, client: _Client, logger: logging.Logger):
        self._client = client
        self._logger = logger

    def start(self) -> None:
        """Connect to the management platform."""
        self._logger.info("Starting in managed mode")
        try:
            self._client.connect()
        except Exception as exc:
            raise ServiceError(f"error during OpAmp connection: {exc}") from exc

    def stop(self, timeout: float | None) -> None:
        """Disconnect from the platform, which stops the collector."""
        self._logger.info("Shutting down collector")
        try:
            self._client.disconnect(timeout)
        except Exception as exc:
            raise ServiceError(f"error during client disconnect: {exc}") from exc

    def error(self) -> queue.Queue:
        """Return a queue that never receives errors."""
        return queue.Queue()