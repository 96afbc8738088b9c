"""NAT traversal module for automatic port forwarding.

Keeps forwarding rules for the local server on every gateway the
discovery backend reports, and restarts discovery when the forwarding
configuration changes.
"""

from natfwd.nat.controller import DiscoveryController, DiscoveryState
from natfwd.nat.device import DeviceEndpoint, NATDevice
from natfwd.nat.discovery import NATDiscovery
from natfwd.nat.exceptions import (
    DeviceDiscoveryError,
    NATError,
    PortMappingError,
    UPnPError,
)
from natfwd.nat.fingerprint import ConfigWatcher, ForwardingConfig
from natfwd.nat.host import PortForwardingHost
from natfwd.nat.mapping import Mapping, Protocol
from natfwd.nat.rules import CreatedRulesSet, RuleCreator

__all__ = [
    "ConfigWatcher",
    "CreatedRulesSet",
    "DeviceDiscoveryError",
    "DeviceEndpoint",
    "DiscoveryController",
    "DiscoveryState",
    "ForwardingConfig",
    "Mapping",
    "NATDevice",
    "NATDiscovery",
    "NATError",
    "PortForwardingHost",
    "PortMappingError",
    "Protocol",
    "RuleCreator",
    "UPnPError",
]
