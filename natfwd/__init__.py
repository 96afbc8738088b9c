"""natfwd - automatic gateway port forwarding for a locally hosted server."""

from __future__ import annotations

__version__ = "0.1.0"

from natfwd.config.config import ConfigManager
from natfwd.models import Config
from natfwd.nat.host import PortForwardingHost
from natfwd.server import ConfiguredServerHost, ServerApplicationHost

__all__ = [
    "Config",
    "ConfigManager",
    "ConfiguredServerHost",
    "PortForwardingHost",
    "ServerApplicationHost",
    "__version__",
]
