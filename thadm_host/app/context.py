"""
Application context - owns the recorder supervisor, the monitor
reconciler and the control API for one host process.

Shutdown sequence:
1. Stop the recorder (graceful, then forceful)
2. Stop the monitor reconciler
3. Join the event relay tasks
4. Stop the control API

``shutdown`` runs the sequence once no matter how many times it is called.
"""

import asyncio
from enum import Enum
from typing import Iterable, Optional

from ..core.api import APIController, APIServer
from ..core.errors import PermissionRequired, SpawnFailure
from ..core.host_config import HostConfig
from ..core.logging_utils import get_module_logger
from ..core.monitor_reconciler import MonitorReconciler
from ..core.monitors import WorkerMonitorEnumerator
from ..core.settings_store import JsonFileSettingsStore, SettingsStore
from ..core.supervisor import ProcessSupervisor
from ..core.vision_manager import VisionManager
from ..core.worker_args import find_worker_binary


class ContextState(Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class AppContext:

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        *,
        reconciler: Optional[MonitorReconciler] = None,
        api_server: Optional[APIServer] = None,
        relay_join_timeout: float = 5.0,
    ):
        self.logger = get_module_logger("AppContext")
        self.supervisor = supervisor
        self.reconciler = reconciler
        self.api_server = api_server
        self.relay_join_timeout = relay_join_timeout

        self._state = ContextState.CREATED
        self._lock = asyncio.Lock()
        self._stopped = asyncio.Event()

    @classmethod
    def from_host_config(
        cls,
        host_config: HostConfig,
        *,
        store: Optional[SettingsStore] = None,
        vision_manager: Optional[VisionManager] = None,
        version: str = "unknown",
    ) -> "AppContext":
        """Wire up the default collaborators from ``config.txt`` values.

        The reconciler is only created when a vision manager is supplied;
        the host itself never captures displays.
        """
        store = store or JsonFileSettingsStore(host_config.store_path)
        program = find_worker_binary(host_config.worker_binary)
        enumerator = WorkerMonitorEnumerator(program)

        supervisor = ProcessSupervisor(
            store,
            program=program,
            monitor_lookup=enumerator,
            poll_attempts=host_config.terminate_poll_attempts,
            poll_interval=host_config.terminate_poll_interval,
        )

        reconciler = None
        if vision_manager is not None:
            reconciler = MonitorReconciler(
                vision_manager,
                WorkerMonitorEnumerator(program, allow_empty=True),
                initial_delay=host_config.reconcile_initial_delay,
                poll_interval=host_config.reconcile_interval,
            )

        api_server = None
        if host_config.api_enabled:
            controller = APIController(supervisor, store, enumerator, reconciler, version=version)
            api_server = APIServer(controller, host=host_config.api_host, port=host_config.api_port)

        return cls(supervisor, reconciler=reconciler, api_server=api_server)

    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def is_stopped(self) -> bool:
        return self._state == ContextState.STOPPED

    async def start(self, *, spawn: bool = False, initial_monitor_ids: Iterable[int] = ()) -> None:
        async with self._lock:
            if self._state != ContextState.CREATED:
                self.logger.warning("Context already started (state=%s)", self._state.value)
                return
            self._state = ContextState.RUNNING

        if self.api_server is not None:
            try:
                await self.api_server.start()
            except OSError as exc:
                self.logger.error("Control API unavailable: %s", exc)

        if spawn:
            try:
                await self.supervisor.spawn()
            except (PermissionRequired, SpawnFailure) as exc:
                self.logger.error("Recorder not started: %s", exc)

        if self.reconciler is not None:
            await self.reconciler.start(initial_monitor_ids)
        else:
            self.logger.info("Monitor reconciler disabled (no vision manager attached)")

    async def shutdown(self, source: str = "unknown") -> None:
        async with self._lock:
            if self._state in (ContextState.STOPPING, ContextState.STOPPED):
                self.logger.debug(
                    "Shutdown already initiated (state=%s), ignoring request from %s",
                    self._state.value,
                    source,
                )
                return
            self._state = ContextState.STOPPING

        self.logger.info("Shutdown initiated by: %s", source)

        await self.supervisor.stop()

        if self.reconciler is not None:
            await self.reconciler.stop()

        await self.supervisor.join_relays(self.relay_join_timeout)

        if self.api_server is not None:
            await self.api_server.stop()

        async with self._lock:
            self._state = ContextState.STOPPED
            self._stopped.set()
        self.logger.info("Shutdown complete")

    async def wait_for_shutdown(self) -> None:
        await self._stopped.wait()
