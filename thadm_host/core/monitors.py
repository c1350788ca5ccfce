"""Display enumeration through the recorder's ``vision list`` subcommand."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .errors import CollaboratorQueryFailure
from .logging_utils import get_module_logger
from .paths import WORKER_NAME

logger = get_module_logger("Monitors")

LIST_MONITORS_ARGS = ("vision", "list", "-o", "json")
LIST_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class MonitorDevice:
    id: int
    name: str
    is_default: bool
    width: int
    height: int

    @classmethod
    def from_dict(cls, data: Any) -> Optional["MonitorDevice"]:
        """Parse one entry of the listing, None when any field is missing or mistyped."""
        if not isinstance(data, dict):
            return None
        try:
            monitor_id = data["id"]
            name = data["name"]
            is_default = data["is_default"]
            width = data["width"]
            height = data["height"]
        except KeyError:
            return None

        for value in (monitor_id, width, height):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                return None
        if not isinstance(name, str) or not isinstance(is_default, bool):
            return None

        return cls(id=monitor_id, name=name, is_default=is_default, width=width, height=height)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MonitorEnumerator(Protocol):
    async def list_monitors(self) -> List[MonitorDevice]:
        """Return the connected displays; raise CollaboratorQueryFailure on error."""
        ...


def parse_monitor_listing(text: str, allow_empty: bool = False) -> List[MonitorDevice]:
    """Parse ``vision list -o json`` output.

    The recorder prints either a bare array or ``{"data": [...], "success": true}``.
    Entries that do not describe a display are dropped. A listing with no
    displays is an error unless ``allow_empty`` is set.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CollaboratorQueryFailure(f"Failed to parse monitor JSON: {exc}") from exc

    entries = payload.get("data") if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        raise CollaboratorQueryFailure("Monitor response is not an array")

    monitors = []
    for entry in entries:
        device = MonitorDevice.from_dict(entry)
        if device is None:
            logger.debug("Dropping malformed monitor entry: %r", entry)
            continue
        monitors.append(device)

    if not monitors and not allow_empty:
        raise CollaboratorQueryFailure("No monitors found")
    return monitors


def select_default_monitor(monitors: Sequence[MonitorDevice]) -> Optional[MonitorDevice]:
    """The display flagged as default, else the first one listed."""
    for monitor in monitors:
        if monitor.is_default:
            return monitor
    return monitors[0] if monitors else None


class WorkerMonitorEnumerator:
    """Runs ``thadm-recorder vision list -o json`` and parses the result.

    Spawn-time lookups need at least one display; the monitor reconciler
    passes ``allow_empty=True`` so it can stop capture on every display once
    all of them are gone.
    """

    def __init__(
        self,
        program: str = WORKER_NAME,
        timeout: float = LIST_TIMEOUT_SECONDS,
        *,
        allow_empty: bool = False,
    ):
        self.program = str(program)
        self.timeout = timeout
        self.allow_empty = allow_empty

    async def list_monitors(self) -> List[MonitorDevice]:
        logger.debug("Getting available monitors")
        try:
            proc = await asyncio.create_subprocess_exec(
                self.program,
                *LIST_MONITORS_ARGS,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CollaboratorQueryFailure(
                f"Failed to execute monitor listing command: {exc}"
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise CollaboratorQueryFailure(
                f"Monitor listing timed out after {self.timeout:.0f}s"
            ) from exc

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            logger.error("Failed to get monitors: %s", message)
            raise CollaboratorQueryFailure(f"Failed to get monitors: {message}")

        try:
            text = stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CollaboratorQueryFailure(
                f"Failed to parse monitor output as UTF-8: {exc}"
            ) from exc

        monitors = parse_monitor_listing(text, allow_empty=self.allow_empty)
        logger.debug("Found %d monitors", len(monitors))
        return monitors


__all__ = [
    "MonitorDevice",
    "MonitorEnumerator",
    "WorkerMonitorEnumerator",
    "parse_monitor_listing",
    "select_default_monitor",
]
