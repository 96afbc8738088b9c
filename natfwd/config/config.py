"""Configuration management for natfwd.

Provides centralized configuration with TOML support, validation, change
notification and hot-reload, loading from defaults -> config file ->
environment.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable

import toml

from natfwd.models import Config, LogLevel, NetworkConfig, ServerConfig
from natfwd.utils.exceptions import ConfigurationError
from natfwd.utils.logging_config import get_logger, setup_logging

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "natfwd.toml"

# Listener invoked with the new configuration after every update
ConfigListener = Callable[[Config], None]

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    # Network
    "NATFWD_ENABLE_UPNP": "network.enable_upnp",
    "NATFWD_ENABLE_REMOTE_ACCESS": "network.enable_remote_access",
    "NATFWD_PUBLIC_HTTP_PORT": "network.public_http_port",
    "NATFWD_PUBLIC_HTTPS_PORT": "network.public_https_port",
    # Server
    "NATFWD_HTTP_PORT": "server.http_port",
    "NATFWD_HTTPS_PORT": "server.https_port",
    "NATFWD_LISTEN_WITH_HTTPS": "server.listen_with_https",
    "NATFWD_SERVER_NAME": "server.name",
    # NAT discovery
    "NATFWD_SEARCH_INTERVAL": "nat.search_interval",
    "NATFWD_DISCOVERY_DELAY_MS": "nat.discovery_delay_ms",
    # Observability
    "NATFWD_LOG_LEVEL": "observability.log_level",
    "NATFWD_LOG_FILE": "observability.log_file",
    "NATFWD_STRUCTURED_LOGGING": "observability.structured_logging",
}

# String settings that must never be coerced to bool/int
_STRING_PATHS = frozenset(
    {"server.name", "observability.log_level", "observability.log_file"}
)


class ConfigManager:
    """Manages configuration loading, validation, change listeners and hot-reload."""

    def __init__(self, config_file: str | Path | None = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for natfwd.toml

        Raises:
            ConfigurationError: if the resulting configuration is invalid

        """
        self._listeners: list[ConfigListener] = []
        self._hot_reload_task: asyncio.Task | None = None
        self._last_mtime: float | None = None
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()

    def _find_config_file(
        self,
        config_file: str | Path | None,
    ) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file)

        search_paths = [
            Path.cwd() / CONFIG_FILE_NAME,
            Path.home() / ".config" / "natfwd" / CONFIG_FILE_NAME,
            Path.home() / f".{CONFIG_FILE_NAME}",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file and self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
                self._last_mtime = self.config_file.stat().st_mtime
            except (OSError, toml.TomlDecodeError) as e:
                msg = f"Failed to load config file {self.config_file}: {e}"
                raise ConfigurationError(msg, {"path": str(self.config_file)}) from e

        config_data = self._merge_config(config_data, self._get_env_config())

        try:
            return Config(**config_data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from environment variables."""
        env_config: dict[str, Any] = {}

        def _parse_env_value(raw: str, path: str) -> bool | int | float | str:
            if path in _STRING_PATHS:
                return raw
            low = raw.lower()
            if low in {"true", "1", "yes", "on"}:
                return True
            if low in {"false", "0", "no", "off"}:
                return False
            try:
                if "." in raw:
                    return float(raw)
                return int(raw)
            except ValueError:
                return raw

        def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
            parts = path.split(".")
            cur = d
            for p in parts[:-1]:
                cur = cur.setdefault(p, {})
            cur[parts[-1]] = value

        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))

        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def get_network_config(self) -> NetworkConfig:
        """Return the current network section."""
        return self.config.network

    def get_server_config(self) -> ServerConfig:
        """Return the current server section."""
        return self.config.server

    def add_listener(self, listener: ConfigListener) -> None:
        """Register a callback invoked after every configuration update."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ConfigListener) -> None:
        """Unregister a configuration update callback. Unknown callbacks are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_listeners(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.config)
            except Exception:
                logger.exception("Configuration listener %r failed", listener)

    def set_config(self, new_config: Config) -> None:
        """Replace the configuration at runtime and notify listeners."""
        self.config = new_config
        self._notify_listeners()

    def update(self, section: str, **values: Any) -> Config:
        """Update fields of one section, validate, store and notify.

        Raises:
            ConfigurationError: if the section is unknown or a value is invalid

        """
        data = self.config.model_dump()
        if section not in data or not isinstance(data[section], dict):
            msg = f"Unknown configuration section: {section}"
            raise ConfigurationError(msg)
        data[section].update(values)
        try:
            new_config = Config(**data)
        except Exception as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg, {"section": section}) from e
        self.set_config(new_config)
        return new_config

    def reload(self) -> Config:
        """Reload configuration from file and environment and notify listeners."""
        self.config = self._load_config()
        self._notify_listeners()
        return self.config

    def setup_logging(self, level: LogLevel | None = None) -> None:
        """Set up logging from the observability section.

        ``level`` replaces the configured log level for this setup only.
        """
        setup_logging(self.config.observability, level)

    def export(self, fmt: str = "toml") -> str:
        """Export current configuration as a string in the given format.

        Args:
            fmt: one of "toml" or "json"

        """
        data = self.config.model_dump(mode="json")
        fmt = (fmt or "toml").lower()
        if fmt == "toml":
            return toml.dumps(data)
        if fmt == "json":
            return json.dumps(data, indent=2)
        msg = f"Unsupported export format: {fmt}"
        raise ConfigurationError(msg)

    async def start_hot_reload(self, interval: float = 1.0) -> None:
        """Watch the config file and reload it when it changes.

        Runs until cancelled or :meth:`stop_hot_reload` is called.
        """
        if not self.config_file:
            return

        hot_logger = get_logger(__name__)
        hot_logger.info("Starting configuration hot-reload monitoring")
        self._hot_reload_task = asyncio.current_task()

        while await self._hot_reload_loop_step(hot_logger, interval):
            pass

    async def _hot_reload_loop_step(
        self, hot_logger: logging.Logger, interval: float
    ) -> bool:
        """Execute a single hot-reload step. Return False to stop the loop."""
        try:
            self.check_for_changes(hot_logger)
            await asyncio.sleep(interval)
            return True
        except asyncio.CancelledError:
            return False
        except ConfigurationError:
            hot_logger.exception("Configuration file is invalid, keeping previous configuration")
            await asyncio.sleep(interval)
            return True
        except Exception:
            hot_logger.exception("Error in hot-reload monitoring")
            await asyncio.sleep(interval * 5)
            return True

    def check_for_changes(self, hot_logger: logging.Logger | None = None) -> bool:
        """Reload if the config file mtime moved forward. Returns True on reload."""
        hot_logger = hot_logger or logger
        if self.config_file is None or not self.config_file.exists():
            return False
        current_mtime = self.config_file.stat().st_mtime
        if self._last_mtime is not None and current_mtime <= self._last_mtime:
            return False
        first_seen = self._last_mtime is None
        self._last_mtime = current_mtime
        if first_seen:
            return False
        hot_logger.info("Configuration file changed, reloading...")
        self.reload()
        hot_logger.info("Configuration reloaded successfully")
        return True

    def stop_hot_reload(self) -> None:
        """Stop hot-reload monitoring."""
        if self._hot_reload_task is not None:
            self._hot_reload_task.cancel()
            self._hot_reload_task = None
