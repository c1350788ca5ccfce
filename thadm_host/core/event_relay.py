"""Relays recorder output to the host log and to event observers."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, List, Optional

from .asyncio_utils import create_logged_task
from .errors import MalformedOutput
from .logging_utils import get_module_logger

logger = get_module_logger("EventRelay")
sidecar_logger = get_module_logger("Sidecar")

SIDECAR_LOG_EVENT = "sidecar_log"
STDERR_PREFIX = "ERROR: "

EventObserver = Callable[[str, str], Any]
ClosedCallback = Callable[[int], Awaitable[None]]


class WorkerEventKind(Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class WorkerEvent:
    kind: WorkerEventKind
    line: Optional[str] = None
    exit_code: Optional[int] = None
    signal: Optional[int] = None

    @classmethod
    def terminated(cls, returncode: Optional[int]) -> "WorkerEvent":
        # asyncio reports death-by-signal as a negative return code.
        if returncode is not None and returncode < 0:
            return cls(WorkerEventKind.TERMINATED, signal=-returncode)
        return cls(WorkerEventKind.TERMINATED, exit_code=returncode)


def decode_line(stream: str, raw: bytes) -> str:
    """Strictly decode one output line without its line terminator."""
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedOutput(stream, raw, exc) from exc
    return text.rstrip("\r\n")


class EventRelay:
    """Drains one recorder's pipes until the process is gone.

    ``on_closed`` is awaited with the recorder pid once both pipes are
    closed and the exit status has been collected, including when the
    relay is cancelled.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        *,
        on_closed: Optional[ClosedCallback] = None,
        observers: Optional[Iterable[EventObserver]] = None,
    ):
        self.process = process
        self.pid = process.pid
        self.on_closed = on_closed
        self.observers: List[EventObserver] = list(observers or ())

    def add_observer(self, observer: EventObserver) -> None:
        self.observers.append(observer)

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        kind: WorkerEventKind,
        queue: "asyncio.Queue[Optional[WorkerEvent]]",
    ) -> None:
        try:
            if stream is None:
                return
            while True:
                try:
                    raw = await stream.readline()
                except ValueError as exc:
                    # Over-long line: the reader has already discarded it.
                    logger.warning("Dropped oversized %s line from pid=%d: %s", kind.value, self.pid, exc)
                    continue
                if not raw:
                    break

                try:
                    line = decode_line(kind.value, raw)
                except MalformedOutput as exc:
                    logger.warning("%s", exc)
                    line = exc.raw.decode("utf-8", errors="replace").rstrip("\r\n")

                await queue.put(WorkerEvent(kind, line=line))
        finally:
            await queue.put(None)

    async def events(self) -> AsyncIterator[WorkerEvent]:
        """Yield output events in arrival order, then one TERMINATED event."""
        queue: "asyncio.Queue[Optional[WorkerEvent]]" = asyncio.Queue()
        pumps = [
            create_logged_task(
                self._pump(self.process.stdout, WorkerEventKind.STDOUT, queue),
                logger=logger,
                context=f"relay-stdout-{self.pid}",
            ),
            create_logged_task(
                self._pump(self.process.stderr, WorkerEventKind.STDERR, queue),
                logger=logger,
                context=f"relay-stderr-{self.pid}",
            ),
        ]

        try:
            open_streams = len(pumps)
            while open_streams:
                event = await queue.get()
                if event is None:
                    open_streams -= 1
                    continue
                yield event

            returncode = await self.process.wait()
            yield WorkerEvent.terminated(returncode)
        finally:
            for pump in pumps:
                if not pump.done():
                    pump.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)

    async def publish(self, event_name: str, payload: str) -> None:
        for observer in list(self.observers):
            try:
                result = observer(event_name, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.error("Event observer %r failed: %s", observer, exc)

    async def handle(self, event: WorkerEvent) -> None:
        if event.kind is WorkerEventKind.STDOUT:
            sidecar_logger.info("%s", event.line)
            await self.publish(SIDECAR_LOG_EVENT, event.line)
        elif event.kind is WorkerEventKind.STDERR:
            sidecar_logger.error("Sidecar stderr: %s", event.line)
            await self.publish(SIDECAR_LOG_EVENT, f"{STDERR_PREFIX}{event.line}")
        elif event.kind is WorkerEventKind.TERMINATED:
            logger.warning(
                "Recorder pid=%d terminated: code=%s, signal=%s",
                self.pid,
                event.exit_code,
                event.signal,
            )

    async def run(self) -> None:
        logger.debug("Event relay started for recorder pid=%d", self.pid)
        try:
            async for event in self.events():
                await self.handle(event)
        finally:
            logger.warning("Recorder pid=%d output closed, clearing handle", self.pid)
            if self.on_closed is not None:
                await self.on_closed(self.pid)


__all__ = [
    "EventObserver",
    "EventRelay",
    "SIDECAR_LOG_EVENT",
    "WorkerEvent",
    "WorkerEventKind",
    "decode_line",
]
