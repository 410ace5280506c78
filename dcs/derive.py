"""Service name derivation from container metadata.

Every exposed port becomes one service. Its name is chosen by specificity:

 1. ``SERVICE_<port>_NAME=<value>`` for that port
 2. ``SERVICE_NAME=<value>`` for every port of the container
 3. the container name
"""
from __future__ import annotations

from typing import Iterable

from .models import Protocol, Service

ENV_PREFIX = "SERVICE"


def parse_port(raw: str) -> tuple[int, str]:
    """Split a docker port key such as ``"80/tcp"`` into ``(80, "tcp")``."""
    port, _, proto = raw.partition("/")
    return int(port), (proto or "tcp")


def _service_env(env: Iterable[str]) -> dict[str, str]:
    """Return ``SERVICE_*`` variables as a dict, later entries winning."""
    out: dict[str, str] = {}
    for item in env:
        key, sep, value = item.partition("=")
        if not sep or not value:
            continue
        if key.split("_", 1)[0] != ENV_PREFIX:
            continue
        out[key] = value
    return out


def derive_services(container_name: str, exposed_ports: Iterable[str], env: Iterable[str]) -> list[Service]:
    """Build the ordered service list for one container.

    ``exposed_ports`` are docker port keys (``"6379/tcp"``) in the order the
    runtime reported them; that order is kept. Malformed keys are skipped.
    """
    values = _service_env(env)
    global_name = values.get(f"{ENV_PREFIX}_NAME")

    services: list[Service] = []
    seen: set[int] = set()
    for raw in exposed_ports:
        try:
            port, _proto = parse_port(raw)
        except ValueError:
            continue
        if port <= 0 or port in seen:
            continue
        seen.add(port)

        name = container_name
        if global_name:
            name = global_name
        per_port = values.get(f"{ENV_PREFIX}_{port}_NAME")
        if per_port:
            name = per_port
        services.append(Service(name=name, port=port, protocol=Protocol.TCP))
    return services
