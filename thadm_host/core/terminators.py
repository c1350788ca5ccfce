"""Platform-specific termination of recorder processes by image name.

One terminator is picked at startup with ``select_terminator``; the
supervisor only sees the ``ProcessTerminator`` interface.
"""

from __future__ import annotations

import asyncio
import signal
import subprocess
import sys
from typing import List, Optional, Protocol, Sequence

import psutil

from .liveness import LivenessChecker
from .logging_utils import get_module_logger
from .paths import worker_image_name

logger = get_module_logger("Terminator")

CREATE_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0x08000000)
WINDOWS_GRACE_SECONDS = 1.0


class ProcessTerminator(Protocol):
    async def terminate(self) -> None:
        """Ask every recorder process to exit."""
        ...

    async def force_kill(self) -> None:
        """Kill every recorder process that is still around."""
        ...


class PosixTerminator:
    """SIGTERM first so the recorder can release its port, SIGKILL as fallback."""

    def __init__(self, liveness: Optional[LivenessChecker] = None):
        self.liveness = liveness or LivenessChecker()

    def _signal_all(self, sig: int) -> int:
        sent = 0
        for proc in self.liveness.find_processes():
            try:
                proc.send_signal(sig)
                sent += 1
            except (psutil.NoSuchProcess, psutil.ZombieProcess):
                continue
            except psutil.AccessDenied as exc:
                logger.error("Cannot signal recorder pid=%d: %s", proc.pid, exc)
        return sent

    async def terminate(self) -> None:
        sent = await asyncio.to_thread(self._signal_all, signal.SIGTERM)
        logger.info("Sent SIGTERM to %d recorder process(es)", sent)

    async def force_kill(self) -> None:
        sent = await asyncio.to_thread(self._signal_all, signal.SIGKILL)
        logger.warning("Sent SIGKILL to %d recorder process(es)", sent)


def _no_window_kwargs() -> dict:
    # creationflags is rejected by Popen on POSIX.
    if sys.platform == "win32":
        return {"creationflags": CREATE_NO_WINDOW}
    return {}


class WindowsTerminator:
    """Tree-kills the recorder with ``taskkill``.

    Windows has no graceful signal for a console-less child, so the
    graceful step is a short grace period followed by the forceful kill.
    """

    def __init__(
        self,
        image_name: Optional[str] = None,
        grace_period: float = WINDOWS_GRACE_SECONDS,
    ):
        self.image_name = image_name or worker_image_name("win32")
        self.grace_period = grace_period

    def _commands(self) -> List[Sequence[str]]:
        taskkill = ["taskkill", "/F", "/T", "/IM", self.image_name]
        return [taskkill, ["cmd", "/C", *taskkill]]

    async def _run(self, argv: Sequence[str]) -> None:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **_no_window_kwargs(),
        )
        _, stderr = await proc.communicate()
        message = stderr.decode("utf-8", errors="replace").strip()
        # taskkill exits non-zero when nothing matched; that is success here.
        if proc.returncode == 0 or "not found" in message or "ERROR: The process" in message:
            logger.debug("Killed %s processes (or none were running)", self.image_name)
        else:
            logger.debug("taskkill completed with output: %s", message)

    async def terminate(self) -> None:
        await asyncio.sleep(self.grace_period)
        await self.force_kill()

    async def force_kill(self) -> None:
        errors = []
        for argv in self._commands():
            try:
                await self._run(argv)
                return
            except OSError as exc:
                logger.warning("%s failed: %s", argv[0], exc)
                errors.append(exc)
        logger.error(
            "All methods to kill %s failed: %s",
            self.image_name,
            "; ".join(str(exc) for exc in errors),
        )


def select_terminator(
    platform: str = sys.platform,
    liveness: Optional[LivenessChecker] = None,
) -> ProcessTerminator:
    if platform == "win32":
        return WindowsTerminator()
    return PosixTerminator(liveness)


__all__ = [
    "CREATE_NO_WINDOW",
    "PosixTerminator",
    "ProcessTerminator",
    "WindowsTerminator",
    "select_terminator",
]
