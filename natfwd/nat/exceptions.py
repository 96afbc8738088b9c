"""NAT traversal exceptions."""

from natfwd.utils.exceptions import NATFwdError


class NATError(NATFwdError):
    """Base exception for NAT traversal errors."""


class DeviceDiscoveryError(NATError):
    """Gateway discovery failed."""


class PortMappingError(NATError):
    """A gateway rejected or failed a port mapping request."""


class UPnPError(PortMappingError):
    """UPnP specific error."""
