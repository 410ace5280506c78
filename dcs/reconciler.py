from __future__ import annotations

import time
from threading import Event, Thread
from typing import Iterable, Iterator, Protocol

from docker.errors import DockerException

from .catalog import CatalogError
from .derive import derive_services
from .docker_ops import ContainerInfo, RuntimeEvent
from .logs import log_event
from .models import Container
from .runtime import ContainerRegistry, NameConflict
from .settings import settings
from .sync import CatalogSync

# Lifecycle noise we do not act on and do not report.
IGNORED_EVENTS = {"create", "destroy", "delete"}


class Runtime(Protocol):
    def list_running(self) -> list[ContainerInfo]: ...

    def inspect(self, container_id: str) -> ContainerInfo: ...

    def events(self, stop: Event, since: float | None = None) -> Iterator[RuntimeEvent]: ...

    def close_events(self) -> None: ...


class Reconciler:
    """Keeps the registry and the catalog in line with the running containers.

    ``bootstrap`` runs once at startup; ``start`` then follows the runtime's
    event stream on a background thread until ``stop``.
    """

    def __init__(
        self,
        runtime: Runtime,
        registry: ContainerRegistry,
        sync: CatalogSync,
        catalog_container_name: str = settings.catalog_container_name,
        event_retry_s: float = settings.event_retry_s,
        resync_on_reconnect: bool = settings.resync_on_reconnect,
    ):
        self.runtime = runtime
        self.registry = registry
        self.sync = sync
        self.catalog_container_name = catalog_container_name
        self.event_retry_s = max(0.1, float(event_retry_s))
        self.resync_on_reconnect = resync_on_reconnect
        # Replay point for the first subscription, so events between the
        # initial listing and the subscription are not lost.
        self.since: float | None = None
        # name -> id of a container refused because another id held the name
        self._waiting: dict[str, str] = {}
        self._stop = Event()
        self._thr: Thread | None = None

    # -- container lifecycle -------------------------------------------------

    def is_catalog_container(self, name: str) -> bool:
        return name == self.catalog_container_name

    def add_container(self, info: ContainerInfo) -> Container | None:
        """Derive services for ``info`` and track it. Does not touch the catalog."""
        if self.is_catalog_container(info.name):
            log_event("DEBUG", f"Not adding catalog container {info.name}")
            return None
        c = Container(
            id=info.id,
            name=info.name,
            address=info.address,
            services=derive_services(info.name, info.exposed_ports, info.env),
        )
        try:
            self.registry.upsert(c)
        except NameConflict as e:
            log_event("ERROR", f"Conflict: {e}", container=info.name)
            self._waiting[info.name] = info.id
            return None
        log_event("INFO", f"Adding container {c.name}")
        return c

    def publish(self, container: Container) -> None:
        """Replace whatever the catalog holds for this node with our view of it."""
        with container.lock:
            if not self.registry.is_current(container):
                return
            self.sync.deregister(container.name)
            self.sync.register(container)

    def start_container(self, container_id: str) -> Container | None:
        try:
            info = self.runtime.inspect(container_id)
        except DockerException as e:
            log_event("ERROR", f"Inspect failed for {container_id[:12]}: {e}")
            return None
        c = self.add_container(info)
        if c is not None:
            self.publish(c)
        return c

    def remove_container(self, container_id: str) -> Container | None:
        c = self.registry.remove(container_id)
        if c is None:
            for name, waiting_id in list(self._waiting.items()):
                if waiting_id == container_id:
                    del self._waiting[name]
            return None
        log_event("INFO", f"Removing container {c.name}")
        # Waits for an in-flight health registration of this container to finish.
        with c.lock:
            self.sync.deregister(c.name)

        waiting_id = self._waiting.pop(c.name, None)
        if waiting_id and waiting_id != container_id:
            log_event("INFO", f"Name {c.name} released, retrying {waiting_id[:12]}")
            self.start_container(waiting_id)
        return c

    def handle_event(self, event: RuntimeEvent) -> None:
        if event.status == "start":
            self.start_container(event.id)
        elif event.status == "die":
            self.remove_container(event.id)
        elif event.status in IGNORED_EVENTS:
            return
        else:
            log_event("DEBUG", f"Received event: {event.status} {event.id[:12]}")

    # -- startup -------------------------------------------------------------

    def bootstrap(self, running: Iterable[ContainerInfo] | None = None, since: float | None = None) -> list[str]:
        """Register every running container, then drop stale managed nodes.

        When ``running`` comes from the caller, ``since`` should be the time
        just before it was listed; the event watch replays from there.
        Listing failures propagate; the caller treats them as fatal. Returns
        the names of the stale nodes that were removed.
        """
        if running is None:
            since = time.time()
            running = self.runtime.list_running()
        self.since = since
        for info in running:
            if self.is_catalog_container(info.name):
                continue
            log_event("INFO", f"Found already running container: {info.name}")
            c = self.add_container(info)
            if c is not None:
                self.publish(c)
        return self.cleanup_stale()

    def cleanup_stale(self) -> list[str]:
        """Deregister managed catalog nodes with no running container behind them."""
        live = self.registry.names()
        try:
            nodes = self.sync.catalog.nodes()
        except CatalogError as e:
            log_event("ERROR", f"Error getting list of nodes: {e}")
            return []

        removed: list[str] = []
        for name in nodes:
            if name in live or self.is_catalog_container(name):
                continue
            try:
                node = self.sync.catalog.node(name)
            except CatalogError as e:
                log_event("ERROR", f"Error getting data for node: {e}", container=name)
                continue
            if not self.sync.is_managed(node):
                continue
            log_event("INFO", f"Removing stale node {name}")
            if self.sync.deregister(name):
                removed.append(name)
        return removed

    def resync(self) -> None:
        """Catch up with changes missed while the event stream was down."""
        running = {info.id: info for info in self.runtime.list_running()}
        for c in self.registry.snapshot():
            if c.id not in running:
                self.remove_container(c.id)
        for cid, info in running.items():
            if cid in self.registry or self.is_catalog_container(info.name):
                continue
            c = self.add_container(info)
            if c is not None:
                self.publish(c)

    # -- event watch ---------------------------------------------------------

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self._loop, name="dcs-events", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()
        self.runtime.close_events()

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def watch(self) -> None:
        """Consume the event stream until it ends or ``stop`` is called."""
        since, self.since = self.since, None
        for event in self.runtime.events(self._stop, since=since):
            try:
                self.handle_event(event)
            except Exception as e:
                log_event("ERROR", f"Event {event.status} failed: {type(e).__name__}: {e}", container=event.id[:12])
            if self._stop.is_set():
                return

    def _loop(self) -> None:
        log_event("INFO", "Finished enumerating containers, starting watch for docker events.")
        while not self._stop.is_set():
            try:
                self.watch()
            except Exception as e:
                if self._stop.is_set():
                    break
                log_event("ERROR", f"Event stream failed: {type(e).__name__}: {e}")
            if self._stop.wait(self.event_retry_s):
                break
            if self.resync_on_reconnect:
                self.since = time.time()
                try:
                    self.resync()
                except Exception as e:
                    log_event("ERROR", f"Resync failed: {type(e).__name__}: {e}")
