"""Fakes and fixtures for NAT forwarding tests."""

from __future__ import annotations

import asyncio

import pytest

from natfwd.config.config import ConfigManager
from natfwd.models import Config, NetworkConfig, ServerConfig
from natfwd.nat.controller import DiscoveryController
from natfwd.nat.device import DeviceEndpoint, NATDevice
from natfwd.nat.discovery import NATDiscovery
from natfwd.nat.exceptions import PortMappingError
from natfwd.nat.fingerprint import ConfigWatcher
from natfwd.nat.rules import RuleCreator
from natfwd.server import ConfiguredServerHost


class FakeDevice(NATDevice):
    """Gateway that records every mapping request it receives."""

    def __init__(
        self,
        host: str = "192.0.2.1",
        port: int = 0,
        fail_ports: tuple[int, ...] = (),
        delay: float = 0.0,
    ) -> None:
        self._endpoint = DeviceEndpoint(host, port)
        self.fail_ports = set(fail_ports)
        self.delay = delay
        self.mappings = []

    @property
    def endpoint(self) -> DeviceEndpoint:
        return self._endpoint

    async def create_port_map(self, mapping) -> None:
        self.mappings.append(mapping)
        if self.delay:
            await asyncio.sleep(self.delay)
        if mapping.private_port in self.fail_ports:
            msg = f"gateway refused {mapping}"
            raise PortMappingError(msg)


class FakeDiscovery(NATDiscovery):
    """Discovery backend driven by the test instead of the network."""

    def __init__(self) -> None:
        super().__init__()
        self.start_calls = 0
        self.stop_calls = 0
        self.events: list[str] = []
        self._discovering = False

    @property
    def is_discovering(self) -> bool:
        return self._discovering

    def start_discovery(self) -> None:
        self.start_calls += 1
        self.events.append("start")
        self._discovering = True

    def stop_discovery(self) -> None:
        self.stop_calls += 1
        self.events.append("stop")
        self._discovering = False


def make_config(
    enable_upnp: bool = True,
    enable_remote_access: bool = True,
    public_http_port: int = 8096,
    public_https_port: int = 8920,
    http_port: int = 8096,
    https_port: int = 8920,
    listen_with_https: bool = False,
) -> Config:
    return Config(
        network=NetworkConfig(
            enable_upnp=enable_upnp,
            enable_remote_access=enable_remote_access,
            public_http_port=public_http_port,
            public_https_port=public_https_port,
        ),
        server=ServerConfig(
            http_port=http_port,
            https_port=https_port,
            listen_with_https=listen_with_https,
        ),
    )


@pytest.fixture
def config_manager(tmp_path):
    """ConfigManager with forwarding enabled and no config file on disk."""
    manager = ConfigManager(tmp_path / "natfwd.toml")
    manager.config = make_config()
    return manager


@pytest.fixture
def server_host(config_manager):
    return ConfiguredServerHost(config_manager)


@pytest.fixture
def discovery():
    return FakeDiscovery()


@pytest.fixture
def config_watcher(config_manager, server_host):
    return ConfigWatcher(lambda: config_manager.config, server_host)


@pytest.fixture
def rule_creator(config_manager, server_host):
    return RuleCreator(lambda: config_manager.config, server_host)


@pytest.fixture
def controller(discovery, config_watcher, rule_creator):
    return DiscoveryController(discovery, config_watcher, rule_creator)


@pytest.fixture
def device():
    return FakeDevice()
