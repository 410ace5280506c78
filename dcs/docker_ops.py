from __future__ import annotations

from dataclasses import dataclass, field
from threading import Event, Lock
from typing import Any, Iterator

import docker
from docker.errors import DockerException


@dataclass(frozen=True)
class ContainerInfo:
    id: str
    name: str
    address: str
    exposed_ports: list[str] = field(default_factory=list)  # docker keys, e.g. "80/tcp"
    env: list[str] = field(default_factory=list)  # "KEY=value"


@dataclass(frozen=True)
class RuntimeEvent:
    id: str
    status: str  # create|start|die|destroy|...


def connect(base_url: str) -> docker.DockerClient:
    """Open a client on ``base_url`` and make sure the daemon answers."""
    client = docker.DockerClient(base_url=base_url)
    client.ping()
    return client


def _address(attrs: dict[str, Any]) -> str:
    net = attrs.get("NetworkSettings") or {}
    if net.get("IPAddress"):
        return net["IPAddress"]
    # User-defined networks leave the top-level address empty.
    for cfg in (net.get("Networks") or {}).values():
        if cfg and cfg.get("IPAddress"):
            return cfg["IPAddress"]
    return ""


def container_info(attrs: dict[str, Any]) -> ContainerInfo:
    """Normalize docker inspect output."""
    config = attrs.get("Config") or {}
    return ContainerInfo(
        id=attrs["Id"],
        name=(attrs.get("Name") or "").lstrip("/"),
        address=_address(attrs),
        exposed_ports=list((config.get("ExposedPorts") or {}).keys()),
        env=list(config.get("Env") or []),
    )


def parse_event(raw: dict[str, Any]) -> RuntimeEvent | None:
    # Newer API versions dropped the top-level "status"/"id" fields.
    actor = raw.get("Actor") or {}
    cid = actor.get("ID") or raw.get("id")
    status = raw.get("Action") or raw.get("status")
    if not cid or not status:
        return None
    return RuntimeEvent(id=cid, status=status)


class DockerRuntime:
    """Container runtime access: listing, inspection and the live event stream."""

    def __init__(self, client: docker.DockerClient):
        self.client = client
        self._stream = None
        self._stream_lock = Lock()

    def list_running(self) -> list[ContainerInfo]:
        # A container may go away between the list call and its inspect.
        return [container_info(c.attrs) for c in self.client.containers.list(ignore_removed=True)]

    def inspect(self, container_id: str) -> ContainerInfo:
        return container_info(self.client.containers.get(container_id).attrs)

    def events(self, stop: Event, since: float | None = None) -> Iterator[RuntimeEvent]:
        """Yield container lifecycle events until ``stop`` is set or the stream ends.

        With ``since`` (a unix timestamp) the daemon first replays the events
        recorded after that moment.
        """
        kwargs: dict[str, Any] = {"decode": True, "filters": {"type": "container"}}
        if since is not None:
            kwargs["since"] = int(since)
        stream = self.client.events(**kwargs)
        with self._stream_lock:
            self._stream = stream
        try:
            for raw in stream:
                if stop.is_set():
                    return
                ev = parse_event(raw)
                if ev is not None:
                    yield ev
        finally:
            self.close_events()

    def close_events(self) -> None:
        with self._stream_lock:
            stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.close()
        except (DockerException, OSError):
            pass

    def close(self) -> None:
        self.close_events()
        self.client.close()
