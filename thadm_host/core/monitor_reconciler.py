"""Keeps display capture in step with the displays that are plugged in.

Every pass compares the displays the recorder can see with the displays
the vision manager is capturing, starts capture on displays that appeared
and stops it on displays that went away.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set, Tuple

from .asyncio_utils import create_logged_task
from .errors import CollaboratorQueryFailure
from .logging_utils import get_module_logger
from .monitors import MonitorDevice, MonitorEnumerator
from .vision_manager import VisionManager, VisionManagerStatus

logger = get_module_logger("MonitorReconciler")

DEFAULT_INITIAL_DELAY = 30.0
DEFAULT_POLL_INTERVAL = 30.0


@dataclass(frozen=True)
class PassResult:
    skipped: bool = False
    new: Tuple[int, ...] = ()
    reconnected: Tuple[int, ...] = ()
    started: Tuple[int, ...] = ()
    stopped: Tuple[int, ...] = ()
    failures: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "new": list(self.new),
            "reconnected": list(self.reconnected),
            "started": list(self.started),
            "stopped": list(self.stopped),
            "failures": list(self.failures),
        }


@dataclass
class _PassLog:
    new: list = field(default_factory=list)
    reconnected: list = field(default_factory=list)
    started: list = field(default_factory=list)
    stopped: list = field(default_factory=list)
    failures: list = field(default_factory=list)

    def freeze(self) -> PassResult:
        return PassResult(
            new=tuple(self.new),
            reconnected=tuple(self.reconnected),
            started=tuple(self.started),
            stopped=tuple(self.stopped),
            failures=tuple(self.failures),
        )


class MonitorReconciler:
    """Background loop driving the vision manager from display hotplug.

    Usage:
        reconciler = MonitorReconciler(vision_manager, enumerator)
        await reconciler.start(initial_ids)
        ...
        await reconciler.stop()
    """

    def __init__(
        self,
        vision_manager: VisionManager,
        enumerator: MonitorEnumerator,
        *,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.vision_manager = vision_manager
        self.enumerator = enumerator
        self.initial_delay = initial_delay
        self.poll_interval = poll_interval

        self.known: Set[int] = set()
        self.last_result: Optional[PassResult] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, initial_ids: Iterable[int] = ()) -> None:
        """Start (or restart) the loop.

        ``initial_ids`` are the displays captured at startup. They seed the
        known set so the first pass does not enumerate displays a second time.
        """
        await self.stop()

        self.known = set(initial_ids)
        logger.info(
            "Starting monitor watcher (initial delay %.0fs, then polling every %.0fs)",
            self.initial_delay,
            self.poll_interval,
        )
        self._task = create_logged_task(
            self._run(),
            logger=logger,
            context="monitor-reconciler",
        )

    async def stop(self) -> None:
        if self._task is None:
            return

        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Monitor watcher stopped")

    async def _run(self) -> None:
        # Gives the OS capture-consent prompt time to be answered before polling.
        await asyncio.sleep(self.initial_delay)
        while True:
            self.last_result = await self.run_pass()
            await asyncio.sleep(self.poll_interval)

    async def _current_displays(self) -> Dict[int, MonitorDevice]:
        try:
            monitors = await self.enumerator.list_monitors()
        except CollaboratorQueryFailure:
            raise
        except Exception as exc:
            raise CollaboratorQueryFailure(f"monitor enumeration failed: {exc}") from exc
        return {monitor.id: monitor for monitor in monitors}

    async def _active_ids(self) -> Set[int]:
        try:
            return set(await self.vision_manager.active_monitors())
        except CollaboratorQueryFailure:
            raise
        except Exception as exc:
            raise CollaboratorQueryFailure(f"active monitor query failed: {exc}") from exc

    async def run_pass(self) -> PassResult:
        """Run one reconciliation pass."""
        try:
            status = await self.vision_manager.status()
        except Exception as exc:
            logger.warning("Vision manager status query failed: %s", exc)
            return PassResult(skipped=True, failures=(str(exc),))
        if status is not VisionManagerStatus.RUNNING:
            logger.debug("Vision manager is %s, skipping pass", status.value)
            return PassResult(skipped=True)

        try:
            current = await self._current_displays()
            active = await self._active_ids()
        except CollaboratorQueryFailure as exc:
            logger.warning("Monitor query failed, retrying next interval: %s", exc)
            return PassResult(failures=(str(exc),))

        outcome = _PassLog()

        for monitor_id, device in current.items():
            if monitor_id in active:
                continue

            if monitor_id in self.known:
                logger.info("Monitor %d reconnected, resuming recording", monitor_id)
                outcome.reconnected.append(monitor_id)
            else:
                logger.info("New monitor %d detected, starting recording", monitor_id)
                self.known.add(monitor_id)
                outcome.new.append(monitor_id)

            try:
                await self.vision_manager.start_monitor_direct(monitor_id, device)
                outcome.started.append(monitor_id)
            except Exception as exc:
                logger.warning("Failed to start recording on monitor %d: %s", monitor_id, exc)
                outcome.failures.append(f"start {monitor_id}: {exc}")

        for monitor_id in sorted(active):
            if monitor_id in current:
                continue

            logger.info("Monitor %d disconnected, stopping recording", monitor_id)
            try:
                await self.vision_manager.stop_monitor(monitor_id)
                outcome.stopped.append(monitor_id)
            except Exception as exc:
                logger.warning("Failed to stop recording on monitor %d: %s", monitor_id, exc)
                outcome.failures.append(f"stop {monitor_id}: {exc}")

        return outcome.freeze()


__all__ = ["MonitorReconciler", "PassResult"]
