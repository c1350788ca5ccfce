"""Lifecycle management for the thadm-recorder worker process."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Set

from .asyncio_utils import create_logged_task, join_tasks
from .config_snapshot import load_snapshot
from .errors import PermissionRequired, SpawnFailure, TerminationTimeout
from .event_relay import EventObserver, EventRelay
from .license import read_license_fields
from .liveness import LivenessChecker
from .logging_utils import get_module_logger
from .monitors import MonitorEnumerator
from .permissions import GrantedPermissionChecker, PermissionChecker
from .settings_store import SettingsStore
from .terminators import ProcessTerminator, select_terminator
from .worker_args import WorkerInvocation, build_invocation, find_worker_binary

DEFAULT_POLL_ATTEMPTS = 6
DEFAULT_POLL_INTERVAL = 0.5


class SupervisorState(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class WorkerHandle:
    process: asyncio.subprocess.Process
    pid: int
    relay_task: Optional[asyncio.Task] = None


Launcher = Callable[[WorkerInvocation], Awaitable[asyncio.subprocess.Process]]


async def default_launcher(invocation: WorkerInvocation) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        *invocation.argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=invocation.merged_env(),
    )


class ProcessSupervisor:
    """Owns at most one recorder process.

    ``spawn`` and ``stop`` are idempotent. The handle is guarded by a
    single lock which is only held to read or swap it, so a relay that
    finishes while ``stop`` is waiting can still clear its own handle.
    """

    def __init__(
        self,
        store: SettingsStore,
        *,
        program: Optional[str] = None,
        liveness: Optional[LivenessChecker] = None,
        terminator: Optional[ProcessTerminator] = None,
        permissions: Optional[PermissionChecker] = None,
        monitor_lookup: Optional[MonitorEnumerator] = None,
        launcher: Optional[Launcher] = None,
        observers: Optional[Sequence[EventObserver]] = None,
        poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        current_pid: Optional[int] = None,
    ):
        self.store = store
        self.program = program or find_worker_binary()
        self.liveness = liveness or LivenessChecker()
        self.terminator = terminator or select_terminator(liveness=self.liveness)
        self.permissions = permissions or GrantedPermissionChecker()
        self.monitor_lookup = monitor_lookup
        self.launcher = launcher or default_launcher
        self.observers: List[EventObserver] = list(observers or ())
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.current_pid = current_pid if current_pid is not None else os.getpid()

        self.logger = get_module_logger("Supervisor")
        self._lock = asyncio.Lock()
        self._handle: Optional[WorkerHandle] = None
        self._relay_tasks: Set[asyncio.Task] = set()

    @property
    def pid(self) -> Optional[int]:
        return self._handle.pid if self._handle else None

    @property
    def relay_tasks(self) -> Set[asyncio.Task]:
        return set(self._relay_tasks)

    def add_observer(self, observer: EventObserver) -> None:
        self.observers.append(observer)

    async def state(self) -> SupervisorState:
        if self._handle is None:
            return SupervisorState.IDLE
        if await self.liveness.is_alive():
            return SupervisorState.RUNNING
        return SupervisorState.IDLE

    async def spawn(self, override_args: Optional[Sequence[str]] = None) -> None:
        """Start the recorder unless one is already running.

        Raises:
            PermissionRequired: screen capture has not been granted.
            SpawnFailure: the OS refused to start the process.
        """
        async with self._lock:
            if self._handle is not None:
                if await self.liveness.is_alive():
                    self.logger.info("Recorder already running (pid=%d), skipping spawn", self._handle.pid)
                    return
                self.logger.warning(
                    "Recorder handle for pid=%d is stale, discarding it", self._handle.pid
                )
                self._handle = None

            config = await load_snapshot(self.store)

            check = self.permissions.check()
            if not check.screen_recording:
                self.logger.warning("Screen recording permission not granted, cannot spawn recorder")
                raise PermissionRequired("screen_recording")
            if not config.disable_audio and not check.microphone:
                self.logger.warning(
                    "Microphone permission not granted while audio is enabled; "
                    "audio capture will not work until it is granted"
                )

            license = await read_license_fields(self.store)
            invocation = await build_invocation(
                self.program,
                config,
                license,
                self.current_pid,
                self.monitor_lookup,
                override_args=override_args,
            )

            try:
                process = await self.launcher(invocation)
            except OSError as exc:
                self.logger.error("Failed to spawn recorder: %s", exc)
                raise SpawnFailure(str(exc)) from exc

            handle = WorkerHandle(process=process, pid=process.pid)
            relay = EventRelay(process, on_closed=self._on_relay_closed, observers=self.observers)
            handle.relay_task = create_logged_task(
                relay.run(),
                logger=self.logger,
                context=f"event-relay-{process.pid}",
                pending=self._relay_tasks,
            )
            self._handle = handle
            self.logger.info("Spawned recorder pid=%d with args: %s", process.pid, list(invocation.args))

    async def _on_relay_closed(self, pid: int) -> None:
        async with self._lock:
            if self._handle is not None and self._handle.pid == pid:
                self._handle = None
                self.logger.warning("Cleared stale handle for recorder pid=%d", pid)

    async def _wait_for_exit(self) -> None:
        for _ in range(self.poll_attempts):
            await asyncio.sleep(self.poll_interval)
            if not await self.liveness.is_alive():
                return
        raise TerminationTimeout(self.poll_attempts, self.poll_interval)

    async def stop(self) -> None:
        """Stop every recorder process. Never raises."""
        async with self._lock:
            handle, self._handle = self._handle, None

        if handle is not None:
            self.logger.info("Stopping recorder pid=%d", handle.pid)
        else:
            self.logger.info("Stopping recorder (no handle held)")

        try:
            await self.terminator.terminate()
        except Exception as exc:
            self.logger.error("Graceful termination failed: %s", exc)

        try:
            await self._wait_for_exit()
            self.logger.info("Recorder exited")
            return
        except TerminationTimeout as exc:
            self.logger.warning("%s, killing", exc)

        try:
            await self.terminator.force_kill()
        except Exception as exc:
            self.logger.error("Forceful kill failed: %s", exc)

    async def join_relays(self, timeout: float = 5.0) -> None:
        await join_tasks(self._relay_tasks, timeout, logger=self.logger)


__all__ = [
    "Launcher",
    "ProcessSupervisor",
    "SupervisorState",
    "WorkerHandle",
    "default_launcher",
]
