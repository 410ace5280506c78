from __future__ import annotations

from typing import Any, Protocol

from .catalog import CatalogError
from .logs import log_event
from .models import Container, Service


class Catalog(Protocol):
    def register(
        self,
        node: str,
        address: str,
        service: dict[str, Any] | None = None,
        check: dict[str, Any] | None = None,
    ) -> None: ...

    def deregister(self, node: str) -> None: ...

    def nodes(self) -> list[str]: ...

    def node(self, name: str) -> dict[str, list[dict[str, Any]]]: ...


class CatalogSync:
    """Mirrors Container records into the catalog.

    The catalog takes one service and one check per registration call, so a
    container with N services costs N calls, each touching only its own
    service and check.
    """

    def __init__(self, catalog: Catalog, managed_tag: str):
        self.catalog = catalog
        self.managed_tag = managed_tag

    def service_payload(self, svc: Service) -> dict[str, Any]:
        return {
            "ID": svc.service_id,
            "Service": svc.name,
            "Port": svc.port,
            "Tags": [self.managed_tag],
        }

    def check_payload(self, node: str, svc: Service) -> dict[str, Any]:
        return {
            "Node": node,
            "CheckID": svc.check_id,
            "Name": svc.check_kind,
            "ServiceID": svc.service_id,
            "Status": svc.status,
            "Output": svc.last_output,
            "Notes": f"{self.managed_tag} managed node",
        }

    def register(self, container: Container) -> bool:
        """Register the node and each of its services.

        Returns False if any call failed; failures are logged and the
        remaining services are still attempted.
        """
        if not container.services:
            try:
                self.catalog.register(container.name, container.address)
            except CatalogError as e:
                log_event("ERROR", f"Register failed: {e}", container=container.name)
                return False
            return True

        ok = True
        for svc in container.services:
            try:
                self.catalog.register(
                    container.name,
                    container.address,
                    service=self.service_payload(svc),
                    check=self.check_payload(container.name, svc),
                )
            except CatalogError as e:
                log_event("ERROR", f"Register failed: {e}", container=container.name, service=svc.name)
                ok = False
        return ok

    def deregister(self, name: str) -> bool:
        try:
            self.catalog.deregister(name)
        except CatalogError as e:
            log_event("ERROR", f"Deregister failed: {e}", container=name)
            return False
        return True

    def is_managed(self, node: dict[str, list[dict[str, Any]]]) -> bool:
        return any(self.managed_tag in s.get("tags", []) for s in node.get("services", []))
