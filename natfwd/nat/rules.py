"""Creation of port forwarding rules on discovered gateways."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Coroutine, Iterator

from natfwd.nat.mapping import Mapping, Protocol

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.models import Config
    from natfwd.nat.device import DeviceEndpoint, NATDevice
    from natfwd.nat.fingerprint import ConfigProvider
    from natfwd.server import ServerApplicationHost

logger = logging.getLogger(__name__)


class CreatedRulesSet:
    """Gateways already handled in the current discovery window.

    Membership means a mapping attempt was made, not that it succeeded.
    """

    def __init__(self) -> None:
        self._endpoints: set[DeviceEndpoint] = set()
        self._lock = threading.Lock()

    def try_add(self, endpoint: DeviceEndpoint) -> bool:
        """Insert ``endpoint`` if absent. Only the caller that inserts gets True."""
        with self._lock:
            if endpoint in self._endpoints:
                return False
            self._endpoints.add(endpoint)
            return True

    def clear(self) -> None:
        with self._lock:
            self._endpoints.clear()

    def snapshot(self) -> frozenset[DeviceEndpoint]:
        with self._lock:
            return frozenset(self._endpoints)

    def __contains__(self, endpoint: object) -> bool:
        with self._lock:
            return endpoint in self._endpoints

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)


class RuleCreator:
    """Issues one TCP mapping request per exposed server port."""

    def __init__(
        self,
        config_provider: ConfigProvider,
        server_host: ServerApplicationHost,
    ) -> None:
        self._config_provider = config_provider
        self._server_host = server_host

    def ports_to_map(self, config: Config | None = None) -> Iterator[tuple[int, int]]:
        """Yield ``(private_port, public_port)`` pairs for the exposed services.

        HTTP is always exposed, HTTPS only while the server listens with it.
        Settings are read when iterated, not cached.
        """
        network = (config or self._config_provider()).network
        yield self._server_host.http_port, network.public_http_port

        if self._server_host.listen_with_https:
            yield self._server_host.https_port, network.public_https_port

    def create_port_maps(self, device: NATDevice) -> list[Coroutine[None, None, bool]]:
        """Build one mapping coroutine per exposed port of ``device``."""
        return [
            self.create_port_map(device, private_port, public_port)
            for private_port, public_port in self.ports_to_map()
        ]

    async def create_port_map(
        self, device: NATDevice, private_port: int, public_port: int
    ) -> bool:
        """Request a permanent TCP mapping on ``device``.

        Failures are logged and reported as False so sibling mappings on the
        same gateway still run.
        """
        logger.debug(
            "Creating port map on local port %d to public port %d with device %s",
            private_port,
            public_port,
            device.endpoint,
        )

        try:
            mapping = Mapping(
                Protocol.TCP,
                private_port,
                public_port,
                lifetime=0,
                description=self._server_host.name,
            )
            await device.create_port_map(mapping)
        except Exception:
            logger.exception(
                "Error creating port map on local port %d to public port %d with device %s",
                private_port,
                public_port,
                device.endpoint,
            )
            return False

        return True
