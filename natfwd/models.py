"""Pydantic models for natfwd.

Provides validated configuration models for the port forwarding host.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class NetworkConfig(BaseModel):
    """Network configuration controlling automatic port forwarding."""

    enable_upnp: bool = Field(
        default=False,
        description="Automatically forward public ports on the local gateway",
    )
    enable_remote_access: bool = Field(
        default=True,
        description="Allow connections from outside the local network",
    )
    public_http_port: int = Field(
        default=8096,
        ge=1,
        le=65535,
        description="Public port forwarded to the HTTP server",
    )
    public_https_port: int = Field(
        default=8920,
        ge=1,
        le=65535,
        description="Public port forwarded to the HTTPS server",
    )


class ServerConfig(BaseModel):
    """Local server whose ports are exposed through the gateway."""

    http_port: int = Field(
        default=8096,
        ge=1,
        le=65535,
        description="Local HTTP listen port",
    )
    https_port: int = Field(
        default=8920,
        ge=1,
        le=65535,
        description="Local HTTPS listen port",
    )
    listen_with_https: bool = Field(
        default=False,
        description="Whether the server also serves HTTPS",
    )
    name: str = Field(
        default="natfwd",
        min_length=1,
        description="Application name used as the port mapping description",
    )


class NATConfig(BaseModel):
    """Gateway discovery backend configuration."""

    search_interval: float = Field(
        default=60.0,
        ge=1.0,
        le=3600.0,
        description="Seconds between gateway searches while discovering",
    )
    discovery_delay_ms: int = Field(
        default=2000,
        ge=100,
        le=30000,
        description="How long a single gateway search waits for replies (ms)",
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=True,
        description="Write JSON records to the log file",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Main configuration model."""

    network: NetworkConfig = Field(
        default_factory=NetworkConfig,
        description="Network configuration",
    )
    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Local server configuration",
    )
    nat: NATConfig = Field(
        default_factory=NATConfig,
        description="NAT discovery configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )

    @model_validator(mode="after")
    def validate_config(self):
        """Reject a server that listens on the same port for HTTP and HTTPS."""
        server = self.server
        if server.listen_with_https and server.http_port == server.https_port:
            msg = f"HTTP and HTTPS cannot share local port {server.http_port}"
            raise ValueError(msg)
        return self
