"""Read-only view of the local server whose ports get forwarded."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover
    from natfwd.config.config import ConfigManager


@runtime_checkable
class ServerApplicationHost(Protocol):
    """Current listen settings of the hosted HTTP/HTTPS server."""

    @property
    def http_port(self) -> int: ...

    @property
    def https_port(self) -> int: ...

    @property
    def listen_with_https(self) -> bool: ...

    @property
    def name(self) -> str: ...


class ConfiguredServerHost:
    """Server host info backed by the ``server`` configuration section.

    Values are read on every access so edits applied through the
    ConfigManager are visible immediately.
    """

    def __init__(self, config_manager: ConfigManager) -> None:
        self._config_manager = config_manager

    @property
    def http_port(self) -> int:
        return self._config_manager.config.server.http_port

    @property
    def https_port(self) -> int:
        return self._config_manager.config.server.https_port

    @property
    def listen_with_https(self) -> bool:
        return self._config_manager.config.server.listen_with_https

    @property
    def name(self) -> str:
        return self._config_manager.config.server.name
