"""Gateway discovery interface.

A discovery backend searches the local network for gateways and notifies
its subscribers about every gateway it sees. Subscriptions are per
instance: a controller attaches its handler on start and detaches it on
stop, so two controllers never share handlers.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Awaitable, Callable

from natfwd.utils.tasks import BackgroundTaskGroup

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.nat.device import NATDevice

logger = logging.getLogger(__name__)

DeviceFoundHandler = Callable[["NATDevice"], Awaitable[None]]


class NATDiscovery(ABC):
    """Base class for gateway discovery backends."""

    def __init__(self) -> None:
        self._handlers: list[DeviceFoundHandler] = []
        self._handlers_lock = threading.Lock()
        self._tasks = BackgroundTaskGroup("device-found")

    @property
    @abstractmethod
    def is_discovering(self) -> bool:
        """Whether a search is currently running."""

    @abstractmethod
    def start_discovery(self) -> None:
        """Begin searching for gateways. Must be called with a running event loop."""

    @abstractmethod
    def stop_discovery(self) -> None:
        """Stop searching. Safe to call when not discovering."""

    def subscribe(self, handler: DeviceFoundHandler) -> None:
        """Attach a device-found handler. Attaching the same handler twice is a no-op."""
        with self._handlers_lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

    def unsubscribe(self, handler: DeviceFoundHandler) -> None:
        """Detach a device-found handler. Unknown handlers are ignored."""
        with self._handlers_lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    @property
    def handler_count(self) -> int:
        with self._handlers_lock:
            return len(self._handlers)

    def emit_device_found(self, device: NATDevice) -> None:
        """Deliver ``device`` to every subscriber, each on its own task.

        Handlers run concurrently; a slow or failing handler never delays
        the others or the search loop.
        """
        with self._handlers_lock:
            handlers = list(self._handlers)
        logger.debug("Gateway %s found, notifying %d handler(s)", device.endpoint, len(handlers))
        for handler in handlers:
            self._tasks.create(handler(device))

    async def wait_for_handlers(self, timeout: float | None = None) -> None:
        """Wait until all in-flight handler tasks have finished."""
        await self._tasks.wait(timeout)
