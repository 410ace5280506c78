from __future__ import annotations

import argparse
import signal
import sys
import time
from threading import Event

from docker.errors import DockerException

from dcs.catalog import ConsulCatalog
from dcs.discovery import DiscoveryError, discover_catalog
from dcs.docker_ops import DockerRuntime, connect
from dcs.health import HealthChecker
from dcs.logs import log_event, setup_logging
from dcs.reconciler import Reconciler
from dcs.runtime import ContainerRegistry
from dcs.settings import settings
from dcs.sync import CatalogSync


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Register running Docker containers as Consul catalog services")
    p.add_argument("--consul", default=settings.consul_address, help="Address of consul server")
    p.add_argument("--docker", default=settings.docker_socket, help="Path to docker socket")
    p.add_argument("--interval", type=float, default=settings.check_interval_s, help="Seconds between health checks")
    p.add_argument("--log-level", default=settings.log_level)
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, settings.log_file)

    try:
        runtime = DockerRuntime(connect(args.docker))
        listed_at = time.time()
        running = runtime.list_running()
    except DockerException as e:
        log_event("CRITICAL", f"Docker unavailable at {args.docker}: {e}")
        return 1

    try:
        catalog, leader = discover_catalog(
            args.consul,
            running,
            container_name=settings.catalog_container_name,
            port=settings.catalog_port,
            factory=lambda address: ConsulCatalog(address, timeout_s=settings.catalog_timeout_s),
        )
    except DiscoveryError as e:
        log_event("CRITICAL", str(e))
        return 1
    log_event("INFO", f"Consul leader is {leader}")

    registry = ContainerRegistry()
    sync = CatalogSync(catalog, settings.managed_tag)
    reconciler = Reconciler(runtime, registry, sync)
    health = HealthChecker(registry, sync, interval_s=args.interval)

    reconciler.bootstrap(running, since=listed_at)

    stop = Event()

    def _on_signal(signum, _frame) -> None:
        log_event("INFO", f"Received signal {signum}, shutting down")
        stop.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    reconciler.start()
    health.start()
    try:
        stop.wait()
    finally:
        reconciler.stop()
        health.stop()
        reconciler.join(timeout=5)
        health.join(timeout=5)
        runtime.close()
        catalog.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
