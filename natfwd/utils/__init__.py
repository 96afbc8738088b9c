"""Shared utilities and infrastructure.

This module contains common utilities used throughout natfwd.
"""

from __future__ import annotations

from natfwd.utils.exceptions import (
    ConfigurationError,
    LifecycleError,
    NATFwdError,
    ObjectDisposedError,
    ValidationError,
)
from natfwd.utils.logging_config import get_logger, setup_logging
from natfwd.utils.tasks import BackgroundTaskGroup

__all__ = [
    "BackgroundTaskGroup",
    # Exceptions
    "ConfigurationError",
    "LifecycleError",
    "NATFwdError",
    "ObjectDisposedError",
    "ValidationError",
    # Logging
    "get_logger",
    "setup_logging",
]
