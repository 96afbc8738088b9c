"""UPnP IGD gateway discovery backed by miniupnpc.

The blocking miniupnpc calls run in the default executor. While
discovering, the search repeats every ``search_interval`` seconds and the
selected gateway is reported on every round; subscribers are expected to
deduplicate.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import urlparse

from natfwd.nat.device import DeviceEndpoint, NATDevice
from natfwd.nat.discovery import NATDiscovery
from natfwd.nat.exceptions import DeviceDiscoveryError, UPnPError

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.models import NATConfig
    from natfwd.nat.mapping import Mapping

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_INTERVAL = 60.0
DEFAULT_DISCOVERY_DELAY_MS = 2000

UPnPFactory = Callable[[], Any]


def _miniupnpc_factory() -> Any:
    import miniupnpc

    return miniupnpc.UPnP()


def endpoint_from_url(url: str) -> DeviceEndpoint:
    """Derive the gateway endpoint from its control or description URL.

    Raises:
        DeviceDiscoveryError: if the URL carries no host

    """
    parsed = urlparse(url)
    if not parsed.hostname:
        msg = f"Gateway URL has no host: {url!r}"
        raise DeviceDiscoveryError(msg)
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    return DeviceEndpoint(parsed.hostname, port)


class UPnPDevice(NATDevice):
    """An Internet Gateway Device selected by miniupnpc."""

    def __init__(self, upnp: Any, endpoint: DeviceEndpoint, lan_address: str) -> None:
        self._upnp = upnp
        self._endpoint = endpoint
        self.lan_address = lan_address
        # miniupnpc handles are not safe to share between threads
        self._call_lock = threading.Lock()

    @property
    def endpoint(self) -> DeviceEndpoint:
        return self._endpoint

    def _call(self, method: str, *args: Any) -> Any:
        with self._call_lock:
            return getattr(self._upnp, method)(*args)

    async def create_port_map(self, mapping: Mapping) -> None:
        """Add ``mapping`` on the gateway for this host's LAN address.

        Raises:
            UPnPError: if miniupnpc fails or the gateway rejects the request

        """
        loop = asyncio.get_running_loop()
        call = functools.partial(
            self._call,
            "addportmapping",
            mapping.public_port,
            mapping.protocol.value,
            self.lan_address,
            mapping.private_port,
            mapping.description,
            "",
            mapping.lifetime,
        )
        details = {"mapping": str(mapping), "device": str(self._endpoint)}
        try:
            accepted = await loop.run_in_executor(None, call)
        except Exception as e:
            msg = f"UPnP port mapping {mapping} failed: {e}"
            raise UPnPError(msg, details) from e

        if not accepted:
            msg = f"Gateway rejected UPnP port mapping {mapping}"
            raise UPnPError(msg, details)


class UPnPDiscovery(NATDiscovery):
    """Periodic UPnP IGD search."""

    def __init__(
        self,
        search_interval: float = DEFAULT_SEARCH_INTERVAL,
        discovery_delay_ms: int = DEFAULT_DISCOVERY_DELAY_MS,
        upnp_factory: UPnPFactory | None = None,
    ) -> None:
        """Initialize UPnP discovery.

        Args:
            search_interval: Seconds between searches while discovering
            discovery_delay_ms: How long one search waits for SSDP replies
            upnp_factory: Creates the miniupnpc handle (``miniupnpc.UPnP`` by default)

        """
        super().__init__()
        self.search_interval = search_interval
        self.discovery_delay_ms = discovery_delay_ms
        self._upnp_factory = upnp_factory or _miniupnpc_factory
        self._search_task: asyncio.Task | None = None

    @classmethod
    def from_config(
        cls, config: NATConfig, upnp_factory: UPnPFactory | None = None
    ) -> UPnPDiscovery:
        return cls(
            search_interval=config.search_interval,
            discovery_delay_ms=config.discovery_delay_ms,
            upnp_factory=upnp_factory,
        )

    @property
    def is_discovering(self) -> bool:
        return self._search_task is not None and not self._search_task.done()

    def start_discovery(self) -> None:
        if self.is_discovering:
            return
        self._search_task = asyncio.get_running_loop().create_task(
            self._search_loop(),
            name="natfwd-upnp-search",
        )
        logger.debug("UPnP search started (interval %.1fs)", self.search_interval)

    def stop_discovery(self) -> None:
        if self._search_task is None:
            return
        if not self._search_task.done():
            self._search_task.cancel()
        self._search_task = None
        logger.debug("UPnP search stopped")

    async def search_once(self) -> UPnPDevice | None:
        """Run one search and return the selected gateway, if any.

        Raises:
            DeviceDiscoveryError: if miniupnpc fails during the search

        """
        loop = asyncio.get_running_loop()
        try:
            upnp = self._upnp_factory()
        except ImportError as e:
            msg = "miniupnpc is required for UPnP support. Install with: pip install natfwd[upnp]"
            raise DeviceDiscoveryError(msg) from e

        try:
            upnp.discoverdelay = self.discovery_delay_ms
            responses = await loop.run_in_executor(None, upnp.discover)
            if not responses:
                logger.debug("No UPnP devices answered the search")
                return None
            control_url = await loop.run_in_executor(None, upnp.selectigd)
        except Exception as e:
            msg = f"UPnP gateway search failed: {e}"
            raise DeviceDiscoveryError(msg) from e

        return UPnPDevice(upnp, endpoint_from_url(control_url), upnp.lanaddr)

    async def _search_loop(self) -> None:
        while True:
            try:
                device = await self.search_once()
                if device is not None:
                    self.emit_device_found(device)
            except DeviceDiscoveryError as e:
                logger.warning("%s", e)
            except Exception:
                logger.exception("Error in UPnP search loop")
            await asyncio.sleep(self.search_interval)
