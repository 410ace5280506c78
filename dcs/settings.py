from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Collaborators
    consul_address: str = os.getenv("DCS_CONSUL_ADDRESS", "0.0.0.0:8500")
    docker_socket: str = os.getenv("DCS_DOCKER_SOCKET", "unix:///var/run/docker.sock")
    catalog_timeout_s: float = _env_float("DCS_CATALOG_TIMEOUT_S", 5.0)

    # Health checks
    check_interval_s: float = _env_float("DCS_CHECK_INTERVAL_S", 2.0)
    probe_timeout_s: float = _env_float("DCS_PROBE_TIMEOUT_S", 1.0)
    health_workers: int = _env_int("DCS_HEALTH_WORKERS", 8)

    # Catalog conventions
    # Nodes carrying this tag are ours; everything else in the catalog is left alone.
    managed_tag: str = os.getenv("DCS_MANAGED_TAG", "consuldock")
    catalog_container_name: str = os.getenv("DCS_CATALOG_CONTAINER", "consul")
    catalog_port: int = _env_int("DCS_CATALOG_PORT", 8500)

    # Event stream
    event_retry_s: float = _env_float("DCS_EVENT_RETRY_S", 5.0)
    resync_on_reconnect: bool = _env_bool("DCS_RESYNC_ON_RECONNECT", True)

    # Logging
    log_level: str = os.getenv("DCS_LOG_LEVEL", "INFO")
    log_file: str | None = os.getenv("DCS_LOG_FILE")


settings = Settings()
