"""Interface of the collaborator that owns per-display capture."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Protocol

from .monitors import MonitorDevice


class VisionManagerStatus(Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class VisionManager(Protocol):
    async def status(self) -> VisionManagerStatus:
        ...

    async def active_monitors(self) -> Iterable[int]:
        """Ids of the displays currently being captured."""
        ...

    async def start_monitor_direct(self, monitor_id: int, device: MonitorDevice) -> None:
        """Start capture on ``device`` without enumerating displays again."""
        ...

    async def stop_monitor(self, monitor_id: int) -> None:
        ...


__all__ = ["VisionManager", "VisionManagerStatus"]
