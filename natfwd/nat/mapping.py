"""Port mapping requests sent to a gateway."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Protocol(str, Enum):
    """Transport protocol of a port mapping."""

    TCP = "TCP"
    UDP = "UDP"


@dataclass(frozen=True)
class Mapping:
    """A request to forward ``public_port`` on the gateway to ``private_port`` here.

    A ``lifetime`` of 0 asks the gateway for a mapping that never expires.
    Keeping the lease alive is the discovery library's job, nothing here
    tracks it after the request is sent.
    """

    protocol: Protocol
    private_port: int
    public_port: int
    lifetime: int = 0
    description: str = ""

    def __post_init__(self) -> None:
        for label, port in (
            ("private_port", self.private_port),
            ("public_port", self.public_port),
        ):
            if not 1 <= port <= 65535:
                msg = f"{label} out of range: {port}"
                raise ValueError(msg)
        if self.lifetime < 0:
            msg = f"lifetime must not be negative: {self.lifetime}"
            raise ValueError(msg)

    def __str__(self) -> str:
        return f"{self.protocol.value} {self.private_port}->{self.public_port}"
