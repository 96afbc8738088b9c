"""Exception hierarchy for natfwd.

Provides the base error type and the lifecycle/configuration errors shared
by every natfwd component.
"""

from __future__ import annotations

from typing import Any


class NATFwdError(Exception):
    """Base exception for all natfwd errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize natfwd error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(NATFwdError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration loading or validation errors."""


class LifecycleError(NATFwdError):
    """Component used in a state that does not allow the operation."""


class ObjectDisposedError(LifecycleError):
    """Component used after it was disposed."""

    def __init__(self, object_name: str):
        """Initialize with the name of the disposed component."""
        super().__init__(
            f"Cannot access a disposed object: {object_name}",
            {"object_name": object_name},
        )
        self.object_name = object_name
