"""Hosted service keeping the gateway port forwarding rules in place."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from natfwd.nat.controller import CREATED_RULES_RESET_INTERVAL, DiscoveryController
from natfwd.nat.fingerprint import ConfigWatcher
from natfwd.nat.rules import RuleCreator
from natfwd.services.base import HealthCheck, Service, ServiceState
from natfwd.utils.exceptions import ObjectDisposedError

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.config.config import ConfigManager
    from natfwd.models import Config
    from natfwd.nat.discovery import NATDiscovery
    from natfwd.server import ServerApplicationHost


class PortForwardingHost(Service):
    """Forwards the server's public ports on every gateway found.

    The host process calls :meth:`start` once at startup and :meth:`stop`
    once at shutdown, then :meth:`dispose`. While running, configuration
    updates that change the forwarding fingerprint restart discovery.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        server_host: ServerApplicationHost,
        discovery: NATDiscovery,
        reset_interval: float = CREATED_RULES_RESET_INTERVAL,
    ) -> None:
        """Initialize port forwarding host.

        Args:
            config_manager: Source of the live configuration and update events
            server_host: Listen settings of the exposed server
            discovery: Gateway discovery backend
            reset_interval: Seconds between clears of the handled gateways

        """
        super().__init__(
            name="port_forwarding",
            description="Automatic gateway port forwarding",
        )
        self._config_manager = config_manager
        self._server_host = server_host
        self.controller = DiscoveryController(
            discovery,
            ConfigWatcher(self._current_config, server_host),
            RuleCreator(self._current_config, server_host),
            reset_interval=reset_interval,
        )
        self._disposed = False

    def _current_config(self) -> Config:
        return self._config_manager.config

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    async def start(self) -> None:
        """Start discovery (if enabled) and begin following configuration updates."""
        if self._disposed:
            raise ObjectDisposedError(type(self).__name__)

        self._transition(ServiceState.STARTING)
        try:
            self.controller.refresh_fingerprint()
            self.controller.start()
        except Exception:
            self._transition(ServiceState.ERROR)
            raise

        self._config_manager.add_listener(self._on_configuration_updated)
        self._transition(ServiceState.RUNNING)

    async def stop(self) -> None:
        """Stop discovery and stop following configuration updates."""
        if self._disposed:
            return

        self._transition(ServiceState.STOPPING)
        self._config_manager.remove_listener(self._on_configuration_updated)
        try:
            self.controller.stop()
        except Exception:
            self._transition(ServiceState.ERROR)
            raise
        self._transition(ServiceState.STOPPED)

    def _on_configuration_updated(self, _config: Config) -> None:
        self.controller.on_configuration_changed()

    async def health_check(self) -> HealthCheck:
        """Report whether the host is in a usable state."""
        if self._disposed:
            return HealthCheck(self.name, healthy=False, message="disposed")
        if self.state == ServiceState.ERROR:
            return HealthCheck(self.name, healthy=False, message="failed to start or stop")
        if self.controller.is_discovering:
            message = f"discovering, {len(self.controller.created_rules)} gateway(s) handled"
        else:
            message = "port forwarding disabled" if self.is_running() else self.state.value
        return HealthCheck(self.name, healthy=True, message=message, details=self.get_status())

    def get_status(self) -> dict[str, Any]:
        """Get host status."""
        status = self.controller.get_status()
        status["service_state"] = self.state.value
        return status

    def dispose(self) -> None:
        """Release the subscription, the timer and the config listener. Idempotent."""
        if self._disposed:
            return

        self._config_manager.remove_listener(self._on_configuration_updated)
        self.controller.dispose()
        self._disposed = True
        super().dispose()
