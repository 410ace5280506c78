"""Minimal client for the Consul catalog HTTP API.

Only the calls the sync engine needs: register/deregister a node, list
nodes, read one node's services and ask for the raft leader.
"""
from __future__ import annotations

from typing import Any

import httpx


class CatalogError(Exception):
    pass


def base_url(address: str) -> str:
    if "://" in address:
        return address.rstrip("/")
    return f"http://{address}"


class ConsulCatalog:
    def __init__(self, address: str, timeout_s: float = 5.0, client: httpx.Client | None = None):
        self.address = address
        self._client = client or httpx.Client(base_url=base_url(address), timeout=timeout_s)

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise CatalogError(f"{method} {path} failed: {type(e).__name__}: {e}") from e
        if resp.status_code >= 400:
            raise CatalogError(f"{method} {path} returned HTTP {resp.status_code}: {resp.text.strip()}")
        return resp

    def register(
        self,
        node: str,
        address: str,
        service: dict[str, Any] | None = None,
        check: dict[str, Any] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"Node": node, "Address": address}
        if service is not None:
            payload["Service"] = service
        if check is not None:
            payload["Check"] = check
        self._request("PUT", "/v1/catalog/register", json=payload)

    def deregister(self, node: str) -> None:
        self._request("PUT", "/v1/catalog/deregister", json={"Node": node})

    def nodes(self) -> list[str]:
        data = self._request("GET", "/v1/catalog/nodes").json() or []
        return [n["Node"] for n in data]

    def node(self, name: str) -> dict[str, list[dict[str, Any]]]:
        """Return ``{"services": [{"id", "service", "tags"}, ...]}``.

        Consul answers ``null`` for a node that does not exist; that reads as
        a node without services.
        """
        data = self._request("GET", f"/v1/catalog/node/{name}").json() or {}
        services = data.get("Services") or {}
        return {
            "services": [
                {"id": sid, "service": s.get("Service", ""), "tags": list(s.get("Tags") or [])}
                for sid, s in services.items()
            ]
        }

    def leader(self) -> str:
        leader = self._request("GET", "/v1/status/leader").json()
        if not leader:
            raise CatalogError(f"Catalog at {self.address} has no leader")
        return str(leader)

    def close(self) -> None:
        self._client.close()
