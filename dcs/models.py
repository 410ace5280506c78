from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from threading import Lock


class Protocol(str, Enum):
    """Probe kind used to check a service. Only TCP connect is implemented."""

    TCP = "tcp"


UNKNOWN = "unknown"
PASSING = "passing"
WARNING = "warning"
CRITICAL = "critical"

CHECK_KIND_TCP = "TCP-SYN"


@dataclass
class Service:
    name: str
    port: int
    protocol: Protocol = Protocol.TCP
    status: str = UNKNOWN  # unknown|passing|warning|critical
    check_kind: str = CHECK_KIND_TCP
    last_output: str = ""

    @property
    def service_id(self) -> str:
        # Several ports may share one derived name; the port keeps ids unique per node.
        return f"{self.name}:{self.port}"

    @property
    def check_id(self) -> str:
        return f"service:{self.service_id}"


@dataclass
class Container:
    id: str
    name: str
    address: str
    services: list[Service] = field(default_factory=list)
    # Held while talking to the catalog about this container.
    lock: Lock = field(default_factory=Lock, compare=False, repr=False)

    def snapshot(self) -> "Container":
        """Copy with independent Service objects; shares the catalog lock."""
        return replace(self, services=[replace(s) for s in self.services])

    def service(self, port: int) -> Service | None:
        for s in self.services:
            if s.port == port:
                return s
        return None
