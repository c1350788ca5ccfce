"""Process-table liveness checks for the recorder."""

from __future__ import annotations

import asyncio
from typing import List, Optional

import psutil

from .logging_utils import get_module_logger
from .paths import worker_image_name

logger = get_module_logger("Liveness")


class LivenessChecker:
    """Answers "is a recorder process running?" by image name.

    The check does not rely on the supervisor's handle, so it also sees
    recorders that were started by a previous host session.
    """

    def __init__(self, image_name: Optional[str] = None):
        self.image_name = image_name or worker_image_name()

    def find_processes(self) -> List[psutil.Process]:
        """Return live processes whose name matches the recorder image."""
        matches = []
        for proc in psutil.process_iter(["name"]):
            try:
                if proc.info.get("name") != self.image_name:
                    continue
                if proc.status() == psutil.STATUS_ZOMBIE:
                    continue
                matches.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return matches

    def is_alive_sync(self) -> bool:
        return bool(self.find_processes())

    async def is_alive(self) -> bool:
        alive = await asyncio.to_thread(self.is_alive_sync)
        logger.debug("%s alive=%s", self.image_name, alive)
        return alive


__all__ = ["LivenessChecker"]
