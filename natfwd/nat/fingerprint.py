"""Change detection for the settings that affect port forwarding."""

from __future__ import annotations

from dataclasses import astuple, dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.models import Config
    from natfwd.server import ServerApplicationHost

ConfigProvider = Callable[[], "Config"]


@dataclass(frozen=True)
class ForwardingConfig:
    """Snapshot of everything that decides which rules get created.

    Field order is the serialization order of the fingerprint.
    """

    enable_upnp: bool
    public_http_port: int
    public_https_port: int
    http_port: int
    https_port: int
    listen_with_https: bool
    enable_remote_access: bool

    @property
    def forwarding_enabled(self) -> bool:
        return self.enable_upnp and self.enable_remote_access


class ConfigWatcher:
    """Computes the forwarding fingerprint from live configuration."""

    SEPARATOR = "|"

    def __init__(
        self,
        config_provider: ConfigProvider,
        server_host: ServerApplicationHost,
    ) -> None:
        self._config_provider = config_provider
        self._server_host = server_host

    def snapshot(self) -> ForwardingConfig:
        """Read the current forwarding-relevant settings."""
        network = self._config_provider().network
        return ForwardingConfig(
            enable_upnp=network.enable_upnp,
            public_http_port=network.public_http_port,
            public_https_port=network.public_https_port,
            http_port=self._server_host.http_port,
            https_port=self._server_host.https_port,
            listen_with_https=self._server_host.listen_with_https,
            enable_remote_access=network.enable_remote_access,
        )

    def compute_fingerprint(self) -> str:
        """Serialize the current snapshot, every value followed by the separator."""
        return "".join(
            f"{value}{self.SEPARATOR}" for value in astuple(self.snapshot())
        )

    @staticmethod
    def has_changed(previous: str | None, current: str | None) -> bool:
        """Case-insensitive comparison; a missing previous value counts as a change."""
        if previous is None or current is None:
            return previous is not current
        return previous.casefold() != current.casefold()
