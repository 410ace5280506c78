from __future__ import annotations

import socket
import time
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Event, Lock, Thread
from typing import Callable

from .logs import log_event
from .models import CRITICAL, PASSING, UNKNOWN, WARNING, Container, Service
from .runtime import ContainerRegistry
from .settings import settings
from .sync import CatalogSync

Probe = Callable[[str, int, float], tuple[bool, str, float]]


def probe_tcp(address: str, port: int, timeout_s: float = 1.0) -> tuple[bool, str, float]:
    """Open (and close) a TCP connection to address:port.

    Returns (reachable, output, latency_ms).
    """
    if not address:
        return False, "Error: container has no network address", 0.0
    start = time.time()
    try:
        with socket.create_connection((address, int(port)), timeout=timeout_s):
            pass
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return True, f"Successful SYN. Connect time: {latency_ms}ms", latency_ms
    except OSError as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, f"Error: {e}", latency_ms


class HealthChecker:
    """Periodically probes every tracked service and pushes the result to the catalog.

    Each container is checked by at most one worker at a time; a container
    whose previous pass has not finished is skipped on the next tick.
    """

    def __init__(
        self,
        registry: ContainerRegistry,
        sync: CatalogSync,
        probe: Probe = probe_tcp,
        interval_s: float = settings.check_interval_s,
        timeout_s: float = settings.probe_timeout_s,
        workers: int = settings.health_workers,
    ):
        self.registry = registry
        self.sync = sync
        self.probe = probe
        self.interval_s = max(0.1, float(interval_s))
        self.timeout_s = float(timeout_s)
        self._pool = ThreadPoolExecutor(max_workers=max(1, int(workers)), thread_name_prefix="dcs-health")
        self._inflight: set[str] = set()
        self._inflight_lock = Lock()
        self._stop = Event()
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self._loop, name="dcs-health-loop", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()
        self._pool.shutdown(wait=False, cancel_futures=True)

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def _loop(self) -> None:
        log_event("DEBUG", "Health checker started")
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                log_event("ERROR", f"Health tick failed: {type(e).__name__}: {e}")
            self._stop.wait(self.interval_s)

    def tick(self) -> list[Future]:
        """Schedule one pass for every container not already being checked."""
        futures: list[Future] = []
        self.registry.for_each(lambda c: self._schedule(c, futures))
        return futures

    def _schedule(self, container: Container, futures: list[Future]) -> None:
        with self._inflight_lock:
            if container.id in self._inflight:
                return
            self._inflight.add(container.id)
        try:
            futures.append(self._pool.submit(self._run, container))
        except RuntimeError:
            # pool shut down
            self._done(container.id)

    def _done(self, container_id: str) -> None:
        with self._inflight_lock:
            self._inflight.discard(container_id)

    def _run(self, container: Container) -> None:
        try:
            self.check_container(container)
        except Exception as e:
            log_event("ERROR", f"Health check failed: {type(e).__name__}: {e}", container=container.name)
        finally:
            self._done(container.id)

    def check_container(self, container: Container) -> bool:
        """Probe all services of ``container`` and re-register it.

        ``container`` is a registry snapshot. Returns False if the container
        stopped being tracked while it was being checked.
        """
        for svc in container.services:
            ok, output, _latency = self.probe(container.address, svc.port, self.timeout_s)
            status = PASSING if ok else CRITICAL
            prev = self.registry.update_service(container.id, svc.port, status, output)
            if prev is None:
                return False
            self._log_transition(container, svc, prev, status, output)
            svc.status = status
            svc.last_output = output

        with container.lock:
            if not self.registry.is_current(container):
                return False
            self.sync.register(container)
        return True

    def _log_transition(self, container: Container, svc: Service, prev: str, status: str, output: str) -> None:
        target = f"[{container.address}:{svc.port}]"
        if status == CRITICAL and prev != CRITICAL:
            log_event("WARN", f"{target} has error {output}", container=container.name, service=svc.name)
        elif status == PASSING and prev == UNKNOWN:
            log_event("INFO", f"{target} passing", container=container.name, service=svc.name)
        elif status == PASSING and prev in (CRITICAL, WARNING):
            log_event("INFO", f"{target} recovered", container=container.name, service=svc.name)
