"""Service-oriented components for natfwd.

Provides the lifecycle base class for hosted services.
"""

from natfwd.services.base import (
    HealthCheck,
    Service,
    ServiceError,
    ServiceInfo,
    ServiceState,
)

__all__ = [
    "HealthCheck",
    "Service",
    "ServiceError",
    "ServiceInfo",
    "ServiceState",
]
