"""Tests for natfwd.config.config.

Covers:
- Loading defaults, TOML files and NATFWD_* environment overrides
- Validation errors
- Change listeners, update() and reload()
- Hot-reload change detection
- Export
"""

from __future__ import annotations

import json
import os
from unittest.mock import MagicMock

import pytest
import toml

from natfwd.config.config import ConfigManager
from natfwd.models import Config, LogLevel
from natfwd.utils.exceptions import ConfigurationError

pytestmark = [pytest.mark.unit, pytest.mark.config]


def _write_config(path, data):
    path.write_text(toml.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "natfwd.toml"


class TestLoading:
    """Tests for configuration loading."""

    def test_defaults_without_file(self, config_path):
        """Test defaults are used when the file does not exist."""
        manager = ConfigManager(config_path)

        assert manager.config.network.enable_upnp is False
        assert manager.config.network.enable_remote_access is True
        assert manager.config.network.public_http_port == 8096
        assert manager.config.server.https_port == 8920
        assert manager.config.nat.search_interval == 60.0

    def test_load_from_file(self, config_path):
        """Test values from the TOML file override defaults."""
        _write_config(
            config_path,
            {
                "network": {"enable_upnp": True, "public_http_port": 9000},
                "server": {"listen_with_https": True, "name": "media"},
            },
        )

        manager = ConfigManager(config_path)

        assert manager.config_file == config_path
        assert manager.config.network.enable_upnp is True
        assert manager.config.network.public_http_port == 9000
        assert manager.config.server.listen_with_https is True
        assert manager.get_server_config().name == "media"
        assert manager.get_network_config().public_https_port == 8920

    def test_env_overrides_file(self, config_path, monkeypatch):
        """Test NATFWD_* variables win over the file."""
        _write_config(config_path, {"network": {"public_http_port": 9000}})
        monkeypatch.setenv("NATFWD_PUBLIC_HTTP_PORT", "9100")
        monkeypatch.setenv("NATFWD_ENABLE_UPNP", "yes")
        monkeypatch.setenv("NATFWD_SEARCH_INTERVAL", "30.5")
        monkeypatch.setenv("NATFWD_SERVER_NAME", "1")
        monkeypatch.setenv("NATFWD_LOG_LEVEL", "DEBUG")

        manager = ConfigManager(config_path)

        assert manager.config.network.public_http_port == 9100
        assert manager.config.network.enable_upnp is True
        assert manager.config.nat.search_interval == 30.5
        assert manager.config.server.name == "1"
        assert manager.config.observability.log_level == LogLevel.DEBUG

    def test_search_cwd(self, tmp_path, monkeypatch):
        """Test natfwd.toml in the working directory is found."""
        _write_config(tmp_path / "natfwd.toml", {"network": {"enable_upnp": True}})
        monkeypatch.chdir(tmp_path)

        manager = ConfigManager()

        assert manager.config_file == tmp_path / "natfwd.toml"
        assert manager.config.network.enable_upnp is True

    def test_invalid_toml(self, config_path):
        """Test unparsable files raise ConfigurationError."""
        config_path.write_text("[network\nenable_upnp = ", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Failed to load config file"):
            ConfigManager(config_path)

    def test_invalid_port(self, config_path):
        """Test out-of-range ports are rejected."""
        _write_config(config_path, {"network": {"public_http_port": 70000}})

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            ConfigManager(config_path)

    def test_https_port_clash(self, config_path):
        """Test HTTP and HTTPS sharing a port is rejected while HTTPS is on."""
        _write_config(
            config_path,
            {"server": {"http_port": 8096, "https_port": 8096, "listen_with_https": True}},
        )

        with pytest.raises(ConfigurationError, match="cannot share local port"):
            ConfigManager(config_path)


class TestListeners:
    """Tests for change notification."""

    def test_set_config_notifies(self, config_path):
        """Test listeners receive the new configuration."""
        manager = ConfigManager(config_path)
        listener = MagicMock()
        manager.add_listener(listener)
        new_config = Config()

        manager.set_config(new_config)

        listener.assert_called_once_with(new_config)
        assert manager.config is new_config

    def test_add_listener_once(self, config_path):
        """Test a listener added twice is notified once."""
        manager = ConfigManager(config_path)
        listener = MagicMock()
        manager.add_listener(listener)
        manager.add_listener(listener)

        manager.set_config(Config())

        assert listener.call_count == 1

    def test_remove_listener(self, config_path):
        """Test removed and unknown listeners are handled."""
        manager = ConfigManager(config_path)
        listener = MagicMock()
        manager.add_listener(listener)
        manager.remove_listener(listener)
        manager.remove_listener(MagicMock())

        manager.set_config(Config())

        listener.assert_not_called()

    def test_failing_listener_isolated(self, config_path, caplog):
        """Test one failing listener does not prevent the others."""
        manager = ConfigManager(config_path)
        failing = MagicMock(side_effect=RuntimeError("listener broke"))
        healthy = MagicMock()
        manager.add_listener(failing)
        manager.add_listener(healthy)

        manager.set_config(Config())

        healthy.assert_called_once()
        assert "Configuration listener" in caplog.text

    def test_update_section(self, config_path):
        """Test update validates, stores and notifies."""
        manager = ConfigManager(config_path)
        listener = MagicMock()
        manager.add_listener(listener)

        updated = manager.update("network", enable_upnp=True, public_http_port=9000)

        assert updated.network.enable_upnp is True
        assert manager.config.network.public_http_port == 9000
        listener.assert_called_once_with(updated)

    def test_update_unknown_section(self, config_path):
        """Test unknown sections are rejected."""
        manager = ConfigManager(config_path)

        with pytest.raises(ConfigurationError, match="Unknown configuration section"):
            manager.update("proxy", enabled=True)

    def test_update_invalid_value(self, config_path):
        """Test invalid values leave the configuration untouched."""
        manager = ConfigManager(config_path)
        listener = MagicMock()
        manager.add_listener(listener)
        before = manager.config

        with pytest.raises(ConfigurationError):
            manager.update("network", public_http_port=0)

        assert manager.config is before
        listener.assert_not_called()

    def test_reload_notifies(self, config_path):
        """Test reload picks up file edits and notifies."""
        _write_config(config_path, {"network": {"public_http_port": 9000}})
        manager = ConfigManager(config_path)
        listener = MagicMock()
        manager.add_listener(listener)

        _write_config(config_path, {"network": {"public_http_port": 9001}})
        manager.reload()

        assert manager.config.network.public_http_port == 9001
        listener.assert_called_once()


class TestHotReload:
    """Tests for file change detection."""

    def test_check_for_changes_reloads_on_newer_mtime(self, config_path):
        """Test a file with a newer mtime is reloaded."""
        _write_config(config_path, {"network": {"public_http_port": 9000}})
        manager = ConfigManager(config_path)
        listener = MagicMock()
        manager.add_listener(listener)

        assert manager.check_for_changes() is False

        _write_config(config_path, {"network": {"public_http_port": 9001}})
        mtime = config_path.stat().st_mtime + 10
        os.utime(config_path, (mtime, mtime))

        assert manager.check_for_changes() is True
        assert manager.config.network.public_http_port == 9001
        listener.assert_called_once()
        assert manager.check_for_changes() is False

    def test_check_for_changes_first_sighting(self, config_path):
        """Test a file created after startup is only recorded on first sight."""
        manager = ConfigManager(config_path)
        _write_config(config_path, {"network": {"public_http_port": 9000}})

        assert manager.check_for_changes() is False
        assert manager.config.network.public_http_port == 8096

    def test_check_for_changes_missing_file(self, config_path):
        """Test a missing file is never reported as changed."""
        manager = ConfigManager(config_path)

        assert manager.check_for_changes() is False

    def test_broken_edit_not_retried(self, config_path):
        """Test an invalid edit raises once and keeps the previous configuration."""
        _write_config(config_path, {"network": {"public_http_port": 9000}})
        manager = ConfigManager(config_path)

        config_path.write_text("[network\n", encoding="utf-8")
        mtime = config_path.stat().st_mtime + 10
        os.utime(config_path, (mtime, mtime))

        with pytest.raises(ConfigurationError):
            manager.check_for_changes()
        assert manager.config.network.public_http_port == 9000
        assert manager.check_for_changes() is False

    @pytest.mark.asyncio
    async def test_start_hot_reload_without_file(self, tmp_path, monkeypatch):
        """Test hot reload returns immediately without a config file."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        manager = ConfigManager()

        assert manager.config_file is None
        await manager.start_hot_reload(interval=0.01)


class TestExport:
    """Tests for configuration export."""

    def test_export_toml(self, config_path):
        """Test TOML export round-trips through the loader."""
        manager = ConfigManager(config_path)
        manager.update("network", enable_upnp=True)

        exported = toml.loads(manager.export("toml"))

        assert exported["network"]["enable_upnp"] is True
        assert exported["observability"]["log_level"] == "INFO"

    def test_export_json(self, config_path):
        """Test JSON export."""
        manager = ConfigManager(config_path)

        exported = json.loads(manager.export("json"))

        assert exported["server"]["http_port"] == 8096

    def test_export_unsupported(self, config_path):
        """Test unsupported formats raise."""
        manager = ConfigManager(config_path)

        with pytest.raises(ConfigurationError, match="Unsupported export format"):
            manager.export("yaml")
