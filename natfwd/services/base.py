"""Lifecycle contract for long-running natfwd components.

A service is started once, stopped once and then disposed. Every state
change is logged under ``natfwd.service.<name>``, and ``async with``
runs the whole start/stop/dispose sequence.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from natfwd.utils.exceptions import NATFwdError
from natfwd.utils.logging_config import get_logger


class ServiceState(Enum):
    """Where a service is in its start/stop/dispose lifecycle."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"
    DISPOSED = "disposed"


class ServiceError(NATFwdError):
    """A service could not change state."""


@dataclass
class ServiceInfo:
    """Point-in-time summary of a service for status output."""

    name: str
    description: str
    state: ServiceState
    error_count: int = 0
    started_at: float | None = None

    @property
    def uptime(self) -> float | None:
        if self.started_at is None or self.state is not ServiceState.RUNNING:
            return None
        return time.time() - self.started_at


@dataclass
class HealthCheck:
    """Outcome of a health probe."""

    service_name: str
    healthy: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class Service(ABC):
    """Base class for hosted natfwd components.

    Subclasses implement :meth:`start`, :meth:`stop` and
    :meth:`health_check` and move through the lifecycle with
    :meth:`_transition`. Entering ``async with`` starts the service;
    leaving it stops and then disposes it, even if stopping fails.
    """

    def __init__(self, name: str, description: str = ""):
        """Initialize service.

        Args:
            name: Service name, also used for the logger name
            description: One-line description for status output

        """
        self.name = name
        self.description = description
        self.state = ServiceState.STOPPED
        self.error_count = 0
        self.started_at: float | None = None
        self.logger = get_logger(f"service.{name}")

    def _transition(self, state: ServiceState) -> None:
        """Move to ``state``, counting errors and stamping the start time."""
        if state is self.state:
            return
        self.logger.debug("%s: %s -> %s", self.name, self.state.value, state.value)
        if state is ServiceState.RUNNING:
            self.started_at = time.time()
        elif state is ServiceState.ERROR:
            self.error_count += 1
        self.state = state

    @abstractmethod
    async def start(self) -> None:
        """Start the service."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the service."""

    @abstractmethod
    async def health_check(self) -> HealthCheck:
        """Report whether the service is usable."""

    def dispose(self) -> None:
        """Release everything held past :meth:`stop`."""
        self._transition(ServiceState.DISPOSED)

    def get_info(self) -> ServiceInfo:
        return ServiceInfo(
            name=self.name,
            description=self.description,
            state=self.state,
            error_count=self.error_count,
            started_at=self.started_at,
        )

    def is_running(self) -> bool:
        return self.state is ServiceState.RUNNING

    async def __aenter__(self) -> Service:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            await self.stop()
        finally:
            self.dispose()
