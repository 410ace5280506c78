from __future__ import annotations

import os
import sys
from threading import Event
from typing import Any

import pytest
from docker.errors import NotFound

# Ensure project root is importable (so `import cli` works without installing).
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from dcs.catalog import CatalogError  # noqa: E402
from dcs.docker_ops import ContainerInfo, RuntimeEvent  # noqa: E402
from dcs.runtime import ContainerRegistry  # noqa: E402
from dcs.sync import CatalogSync  # noqa: E402

TAG = "consuldock"


class FakeCatalog:
    """In-memory stand-in for the Consul catalog with the same call shapes."""

    def __init__(self) -> None:
        self.state: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_services: set[str] = set()
        self.fail_deregister = False
        self.fail_nodes = False

    def register(self, node, address, service=None, check=None) -> None:
        self.calls.append(("register", node))
        if service and service["Service"] in self.fail_services:
            raise CatalogError(f"cannot register {service['Service']}")
        entry = self.state.setdefault(node, {"address": address, "services": {}, "checks": {}})
        entry["address"] = address
        if service is not None:
            entry["services"][service["ID"]] = dict(service)
        if check is not None:
            entry["checks"][check["CheckID"]] = dict(check)

    def deregister(self, node) -> None:
        self.calls.append(("deregister", node))
        if self.fail_deregister:
            raise CatalogError("deregister refused")
        self.state.pop(node, None)

    def nodes(self) -> list[str]:
        if self.fail_nodes:
            raise CatalogError("catalog unavailable")
        return list(self.state)

    def node(self, name):
        entry = self.state.get(name) or {"services": {}}
        return {
            "services": [
                {"id": sid, "service": s["Service"], "tags": list(s.get("Tags", []))}
                for sid, s in entry["services"].items()
            ]
        }

    def leader(self) -> str:
        return "10.0.0.2:8300"

    def close(self) -> None:
        pass

    def seed(self, node: str, tags: list[str]) -> None:
        self.state[node] = {
            "address": "10.9.9.9",
            "services": {f"{node}:1": {"ID": f"{node}:1", "Service": node, "Port": 1, "Tags": tags}},
            "checks": {},
        }

    def count(self, op: str, node: str) -> int:
        return sum(1 for c in self.calls if c == (op, node))


class FakeRuntime:
    def __init__(self, containers: list[ContainerInfo] | None = None) -> None:
        self.containers = {c.id: c for c in containers or []}
        self.queued: list[RuntimeEvent] = []
        # (timestamp, event) pairs the daemon already recorded, replayed with since=
        self.history: list[tuple[float, RuntimeEvent]] = []
        self.since_seen: list[float | None] = []
        self.closed = 0

    def list_running(self) -> list[ContainerInfo]:
        return list(self.containers.values())

    def inspect(self, container_id: str) -> ContainerInfo:
        if container_id not in self.containers:
            raise NotFound(f"No such container: {container_id}")
        return self.containers[container_id]

    def events(self, stop: Event, since: float | None = None):
        self.since_seen.append(since)
        if since is not None:
            for ts, event in self.history:
                if ts >= since and not stop.is_set():
                    yield event
        while self.queued and not stop.is_set():
            yield self.queued.pop(0)

    def close_events(self) -> None:
        self.closed += 1


def make_info(
    name: str,
    ports: list[str] | None = None,
    env: list[str] | None = None,
    cid: str | None = None,
    address: str = "172.17.0.5",
) -> ContainerInfo:
    return ContainerInfo(
        id=cid or f"{name}-id-0123456789",
        name=name,
        address=address,
        exposed_ports=list(ports or []),
        env=list(env or []),
    )


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def registry() -> ContainerRegistry:
    return ContainerRegistry()


@pytest.fixture
def sync(catalog) -> CatalogSync:
    return CatalogSync(catalog, TAG)
