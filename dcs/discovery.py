"""Locate a catalog endpoint that has a leader.

Two explicit steps:
 1. ask the configured address
 2. look for the catalog's own container among the running ones and ask
    ``<its address>:<catalog_port>``

If neither answers, DiscoveryError is raised and startup should stop.
"""
from __future__ import annotations

from typing import Callable, Iterable

from .catalog import CatalogError, ConsulCatalog
from .docker_ops import ContainerInfo
from .logs import log_event


class DiscoveryError(RuntimeError):
    pass


CatalogFactory = Callable[[str], ConsulCatalog]


def find_catalog_container(running: Iterable[ContainerInfo], name: str) -> ContainerInfo | None:
    for info in running:
        if info.name == name and info.address:
            return info
    return None


def discover_catalog(
    address: str,
    running: Iterable[ContainerInfo],
    container_name: str,
    port: int,
    factory: CatalogFactory,
) -> tuple[ConsulCatalog, str]:
    """Return a catalog client and its current leader."""
    catalog = factory(address)
    try:
        return catalog, catalog.leader()
    except CatalogError as e:
        log_event("WARN", f"Error getting catalog status from {address}: {e}")
        catalog.close()

    info = find_catalog_container(running, container_name)
    if info is None:
        raise DiscoveryError(
            f"Unable to determine catalog address. Try using --consul or creating a container named '{container_name}'"
        )

    fallback = f"{info.address}:{port}"
    log_event("INFO", f"Retrying with {fallback}")
    catalog = factory(fallback)
    try:
        return catalog, catalog.leader()
    except CatalogError as e:
        catalog.close()
        raise DiscoveryError(f"Catalog at {fallback} did not answer: {e}") from e
