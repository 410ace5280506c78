"""Logging for the sync engine.

All modules log through the ``dcs`` logger. ``log_event`` keeps the call sites
short and puts the container/service context in front of the message so a
failure can be traced back to the container that caused it.
"""
from __future__ import annotations

import logging

LOGGER_NAME = "dcs"

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=level.upper(),
        filename=log_file,
        format="[%(asctime)s] %(levelname)s [%(name)s] %(message)s",
    )


def log_event(level: str, message: str, container: str | None = None, service: str | None = None) -> None:
    if container and service:
        message = f"{container}:{service} {message}"
    elif container:
        message = f"{container} {message}"
    logger.log(logging.getLevelName(level.upper()), message)
