"""Gateway discovery lifecycle and rule reconciliation."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from natfwd.nat.rules import CreatedRulesSet
from natfwd.utils.exceptions import ObjectDisposedError
from natfwd.utils.logging_config import set_correlation_id

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.nat.device import NATDevice
    from natfwd.nat.discovery import NATDiscovery
    from natfwd.nat.fingerprint import ConfigWatcher
    from natfwd.nat.rules import RuleCreator

logger = logging.getLogger(__name__)

# Gateways are eligible for a new mapping attempt after this many seconds
CREATED_RULES_RESET_INTERVAL = 600.0


class DiscoveryState(Enum):
    """Discovery controller states."""

    STOPPED = "stopped"
    DISCOVERING = "discovering"


class DiscoveryController:
    """Owns one discovery session and maps ports on every gateway it reports.

    Each gateway is handled at most once per discovery window. The window
    ends when the reset timer clears the created rules set or when
    discovery restarts.
    """

    def __init__(
        self,
        discovery: NATDiscovery,
        config_watcher: ConfigWatcher,
        rule_creator: RuleCreator,
        reset_interval: float = CREATED_RULES_RESET_INTERVAL,
    ) -> None:
        """Initialize discovery controller.

        Args:
            discovery: Backend that finds gateways and reports them
            config_watcher: Source of the forwarding snapshot and fingerprint
            rule_creator: Creates the mappings on a found gateway
            reset_interval: Seconds between clears of the created rules set

        """
        self._discovery = discovery
        self._config_watcher = config_watcher
        self._rule_creator = rule_creator
        self._reset_interval = reset_interval

        self.created_rules = CreatedRulesSet()
        self.state = DiscoveryState.STOPPED
        self.fingerprint: str | None = None
        self._reset_task: asyncio.Task | None = None
        self._disposed = False

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def is_discovering(self) -> bool:
        return self.state is DiscoveryState.DISCOVERING

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise ObjectDisposedError(type(self).__name__)

    def refresh_fingerprint(self) -> str:
        """Store and return the fingerprint of the current configuration."""
        self.fingerprint = self._config_watcher.compute_fingerprint()
        return self.fingerprint

    def start(self) -> bool:
        """Start discovery when forwarding and remote access are enabled.

        Returns:
            True if a discovery session was started

        """
        self._ensure_not_disposed()

        forwarding = self._config_watcher.snapshot()
        if not forwarding.forwarding_enabled:
            return False

        if self.is_discovering:
            logger.debug("NAT discovery already running")
            return False

        # Raises before any side effect when called outside the event loop
        loop = asyncio.get_running_loop()

        logger.info("Starting NAT discovery")

        # A new session opens a new discovery window
        self.reset_created_rules()
        self._discovery.subscribe(self.on_device_found)
        try:
            self._discovery.start_discovery()
        except Exception:
            self._discovery.unsubscribe(self.on_device_found)
            raise
        self.state = DiscoveryState.DISCOVERING

        self._cancel_reset_task()
        self._reset_task = loop.create_task(
            self._reset_created_rules_loop(),
            name="natfwd-created-rules-reset",
        )
        return True

    def stop(self) -> None:
        """Stop discovery and tear down the subscription and reset timer."""
        if self.is_discovering:
            logger.info("Stopping NAT discovery")
        try:
            self._discovery.stop_discovery()
        finally:
            self._discovery.unsubscribe(self.on_device_found)
            self._cancel_reset_task()
            self.state = DiscoveryState.STOPPED

    def on_configuration_changed(self) -> bool:
        """Restart discovery if the forwarding fingerprint moved.

        The first fingerprint is only recorded. Returns True when a restart
        happened.

        Raises:
            RuntimeError: if discovery would be restarted outside a running
                event loop. The current session and fingerprint are kept.

        """
        self._ensure_not_disposed()

        previous = self.fingerprint
        current = self.refresh_fingerprint()
        if previous is None or not self._config_watcher.has_changed(previous, current):
            return False

        if self._config_watcher.snapshot().forwarding_enabled:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                self.fingerprint = previous
                raise

        logger.info("Port forwarding configuration changed, restarting NAT discovery")
        self.stop()
        self.start()
        return True

    async def on_device_found(self, device: NATDevice) -> None:
        """Create the forwarding rules on a newly reported gateway.

        Raises:
            ObjectDisposedError: if the controller was disposed

        """
        self._ensure_not_disposed()

        try:
            endpoint = device.endpoint
            set_correlation_id(f"gateway-{endpoint}")

            # Some gateways announce themselves over and over
            if not self.created_rules.try_add(endpoint):
                logger.debug("Ignoring repeated discovery of gateway %s", endpoint)
                return

            results = await asyncio.gather(*self._rule_creator.create_port_maps(device))
            logger.info(
                "Created %d of %d port mapping(s) on gateway %s",
                sum(1 for ok in results if ok),
                len(results),
                endpoint,
            )
        except Exception:
            logger.exception("Error creating port forwarding rules")

    def reset_created_rules(self) -> None:
        """Forget handled gateways so the next sighting maps them again."""
        cleared = len(self.created_rules)
        self.created_rules.clear()
        if cleared:
            logger.debug("Cleared %d gateway(s) from the created rules set", cleared)

    async def _reset_created_rules_loop(self) -> None:
        while True:
            await asyncio.sleep(self._reset_interval)
            self.reset_created_rules()

    def _cancel_reset_task(self) -> None:
        if self._reset_task is not None:
            if not self._reset_task.done():
                self._reset_task.cancel()
            self._reset_task = None

    def get_status(self) -> dict[str, Any]:
        """Get controller status."""
        return {
            "state": self.state.value,
            "disposed": self._disposed,
            "fingerprint": self.fingerprint,
            "gateways": sorted(str(endpoint) for endpoint in self.created_rules.snapshot()),
        }

    def dispose(self) -> None:
        """Tear down discovery for good. Safe to call more than once."""
        if self._disposed:
            return

        if self.is_discovering:
            self.stop()
        else:
            self._discovery.unsubscribe(self.on_device_found)
            self._cancel_reset_task()

        self._disposed = True
