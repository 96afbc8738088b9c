"""Command line interface for natfwd."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from natfwd.config.config import ConfigManager
from natfwd.models import LogLevel
from natfwd.nat.exceptions import DeviceDiscoveryError
from natfwd.nat.fingerprint import ConfigWatcher
from natfwd.nat.host import PortForwardingHost
from natfwd.nat.upnp import UPnPDiscovery
from natfwd.server import ConfiguredServerHost
from natfwd.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _load_config(ctx: click.Context) -> ConfigManager:
    """Build the ConfigManager for this invocation and set up logging."""
    try:
        config_manager = ConfigManager(ctx.obj.get("config"))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    configured = config_manager.config.observability.log_level
    config_manager.setup_logging(
        _verbosity_level(ctx.obj.get("verbosity", 0), configured)
    )
    return config_manager


def _verbosity_level(verbosity: int, configured: LogLevel) -> LogLevel | None:
    """Log level requested by -v flags, or None to keep the configured one."""
    if verbosity >= 2:
        return LogLevel.DEBUG
    if verbosity == 1 and configured != LogLevel.DEBUG:
        return LogLevel.INFO
    return None


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: info, -vv: debug)",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: int) -> None:
    """natfwd - keep the server's ports forwarded on the local gateway."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbosity"] = verbose


async def _run_host(config_manager: ConfigManager) -> None:
    discovery = UPnPDiscovery.from_config(config_manager.config.nat)
    host = PortForwardingHost(
        config_manager,
        ConfiguredServerHost(config_manager),
        discovery,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_event.set)

    async with host:
        if not host.controller.is_discovering:
            logger.info(
                "Port forwarding is disabled; waiting for configuration changes"
            )
        reload_task = asyncio.create_task(config_manager.start_hot_reload())
        try:
            await stop_event.wait()
        finally:
            config_manager.stop_hot_reload()
            reload_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reload_task


@cli.command("run")
@click.pass_context
def run(ctx: click.Context) -> None:
    """Run the port forwarding host until interrupted."""
    config_manager = _load_config(ctx)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run_host(config_manager))


@cli.command("discover")
@click.option(
    "--delay-ms",
    type=click.IntRange(100, 30000),
    default=None,
    help="How long to wait for gateway replies (ms)",
)
@click.pass_context
def discover(ctx: click.Context, delay_ms: int | None) -> None:
    """Search the local network once and list the gateway found."""
    config_manager = _load_config(ctx)
    console = Console()
    discovery = UPnPDiscovery.from_config(config_manager.config.nat)
    if delay_ms is not None:
        discovery.discovery_delay_ms = delay_ms

    try:
        device = asyncio.run(discovery.search_once())
    except DeviceDiscoveryError as e:
        raise click.ClickException(str(e)) from e

    if device is None:
        console.print("[yellow]No UPnP gateway found[/yellow]")
        return

    table = Table(title="UPnP Gateways")
    table.add_column("Endpoint", style="cyan")
    table.add_column("LAN Address", style="magenta")
    table.add_row(str(device.endpoint), device.lan_address)
    console.print(table)


@cli.group("config")
def config_group() -> None:
    """Inspect the forwarding configuration."""


@config_group.command("show")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["table", "toml", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def config_show(ctx: click.Context, fmt: str) -> None:
    """Show the settings that drive port forwarding and their fingerprint."""
    config_manager = _load_config(ctx)
    console = Console()

    if fmt != "table":
        click.echo(config_manager.export(fmt))
        return

    watcher = ConfigWatcher(
        lambda: config_manager.config, ConfiguredServerHost(config_manager)
    )
    snapshot = watcher.snapshot()
    rows: list[tuple[str, Any]] = [
        ("Forwarding enabled", snapshot.enable_upnp),
        ("Remote access enabled", snapshot.enable_remote_access),
        ("Public HTTP port", snapshot.public_http_port),
        ("Public HTTPS port", snapshot.public_https_port),
        ("Local HTTP port", snapshot.http_port),
        ("Local HTTPS port", snapshot.https_port),
        ("HTTPS enabled", snapshot.listen_with_https),
    ]

    table = Table(title="Port Forwarding")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for name, value in rows:
        table.add_row(name, str(value))
    console.print(table)
    console.print(f"Fingerprint: {watcher.compute_fingerprint()}", markup=False)


def main() -> None:
    """Entry point for the natfwd console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
