from __future__ import annotations

from threading import Lock
from typing import Callable

from .models import Container


class NameConflict(Exception):
    def __init__(self, name: str, existing_id: str, new_id: str):
        super().__init__(f"Node name '{name}' already used by container {existing_id[:12]}, refusing {new_id[:12]}")
        self.name = name
        self.existing_id = existing_id
        self.new_id = new_id


class ContainerRegistry:
    """In-memory view of the containers we track, keyed by container id.

    Shared by the event watcher and the health loop. Reads hand out
    snapshots so callers never iterate the live dict.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self._containers: dict[str, Container] = {}  # container_id -> container

    def upsert(self, container: Container) -> Container | None:
        """Track ``container``; returns the record it replaced, if any.

        Raises NameConflict when a different container id already owns the
        same name, since both would map onto one catalog node.
        """
        with self.lock:
            for other in self._containers.values():
                if other.name == container.name and other.id != container.id:
                    raise NameConflict(container.name, other.id, container.id)
            prev = self._containers.get(container.id)
            self._containers[container.id] = container
            return prev

    def remove(self, container_id: str) -> Container | None:
        with self.lock:
            return self._containers.pop(container_id, None)

    def get(self, container_id: str) -> Container | None:
        with self.lock:
            c = self._containers.get(container_id)
            return c.snapshot() if c else None

    def is_current(self, container: Container) -> bool:
        """True while ``container`` (or a snapshot of it) is the tracked record."""
        with self.lock:
            cur = self._containers.get(container.id)
            return cur is not None and cur.lock is container.lock

    def snapshot(self) -> list[Container]:
        with self.lock:
            return [c.snapshot() for c in self._containers.values()]

    def for_each(self, fn: Callable[[Container], None]) -> None:
        """Call ``fn`` on a snapshot of every container; removals during the walk are harmless."""
        for c in self.snapshot():
            fn(c)

    def names(self) -> set[str]:
        with self.lock:
            return {c.name for c in self._containers.values()}

    def __len__(self) -> int:
        with self.lock:
            return len(self._containers)

    def __contains__(self, container_id: object) -> bool:
        with self.lock:
            return container_id in self._containers

    def update_service(self, container_id: str, port: int, status: str, output: str) -> str | None:
        """Record a probe result.

        Returns the previous status, or None when the container (or the port)
        is no longer tracked, in which case nothing is written.
        """
        with self.lock:
            c = self._containers.get(container_id)
            if c is None:
                return None
            svc = c.service(port)
            if svc is None:
                return None
            prev = svc.status
            svc.status = status
            svc.last_output = output
            return prev
