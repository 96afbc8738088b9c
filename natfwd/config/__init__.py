"""Configuration management.

This module handles configuration loading, validation and change notification.
"""

from __future__ import annotations

from natfwd.config.config import Config, ConfigListener, ConfigManager

__all__ = [
    "Config",
    "ConfigListener",
    "ConfigManager",
]
