"""Gateway devices reported by a discovery backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.nat.mapping import Mapping


class DeviceEndpoint(NamedTuple):
    """Network address identifying a discovered gateway."""

    host: str
    port: int

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


class NATDevice(ABC):
    """A gateway able to create port mappings."""

    @property
    @abstractmethod
    def endpoint(self) -> DeviceEndpoint:
        """Stable identity of the gateway on the local network."""

    @abstractmethod
    async def create_port_map(self, mapping: Mapping) -> None:
        """Ask the gateway to create ``mapping``.

        Raises:
            PortMappingError: if the gateway refuses or the request fails

        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.endpoint})"
