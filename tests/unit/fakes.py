"""Collaborator fakes shared by the unit tests.

- FakeProcess: asyncio subprocess look-alike with scripted pipe output
- FakeLiveness / FakeTerminator: process-table state shared between them
- FakeLauncher: records invocations and hands out FakeProcess objects
- FakeEnumerator / FakeVisionManager: display enumeration and capture
- StaticPermissionChecker: fixed permission answers
"""

from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from thadm_host.core.errors import CollaboratorQueryFailure
from thadm_host.core.monitors import MonitorDevice
from thadm_host.core.permissions import PermissionsCheck
from thadm_host.core.vision_manager import VisionManagerStatus
from thadm_host.core.worker_args import WorkerInvocation


FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Process fakes
# =============================================================================

class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process``.

    Output given to the constructor is fed to the pipes immediately. The
    pipes stay open until ``finish`` is called, so a relay attached to a
    FakeProcess keeps running like it would for a live recorder.
    """

    def __init__(
        self,
        pid: int = 4242,
        stdout: bytes = b"",
        stderr: bytes = b"",
    ):
        self.pid = pid
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        if stdout:
            self.stdout.feed_data(stdout)
        if stderr:
            self.stderr.feed_data(stderr)
        self.returncode: Optional[int] = None
        self._exited = asyncio.Event()

    @property
    def finished(self) -> bool:
        return self._exited.is_set()

    def finish(self, returncode: int = 0) -> None:
        if self.finished:
            return
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self.returncode = returncode
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode


class FakeLiveness:
    """Liveness checker whose answer is a plain attribute."""

    def __init__(self, alive: bool = False):
        self.alive = alive
        self.calls = 0

    async def is_alive(self) -> bool:
        self.calls += 1
        return self.alive

    def find_processes(self) -> list:
        return []


class FakeTerminator:
    """Terminator that flips a FakeLiveness and finishes fake processes.

    With ``graceful_works=False`` the graceful step is ignored by the
    "recorder", forcing the supervisor to escalate.
    """

    def __init__(self, liveness: FakeLiveness, graceful_works: bool = True):
        self.liveness = liveness
        self.graceful_works = graceful_works
        self.processes: List[FakeProcess] = []
        self.calls: List[str] = []

    def _kill_all(self, returncode: int) -> None:
        self.liveness.alive = False
        for process in self.processes:
            process.finish(returncode)

    async def terminate(self) -> None:
        self.calls.append("terminate")
        if self.graceful_works:
            self._kill_all(-15)

    async def force_kill(self) -> None:
        self.calls.append("force_kill")
        self._kill_all(-9)


class FakeLauncher:
    """Records invocations and returns a new FakeProcess for each launch."""

    def __init__(
        self,
        liveness: FakeLiveness,
        terminator: Optional[FakeTerminator] = None,
        error: Optional[BaseException] = None,
    ):
        self.liveness = liveness
        self.terminator = terminator
        self.error = error
        self.invocations: List[WorkerInvocation] = []
        self.processes: List[FakeProcess] = []
        self._pids = itertools.count(5000)

    async def __call__(self, invocation: WorkerInvocation) -> FakeProcess:
        self.invocations.append(invocation)
        if self.error is not None:
            raise self.error
        process = FakeProcess(pid=next(self._pids))
        self.processes.append(process)
        if self.terminator is not None:
            self.terminator.processes.append(process)
        self.liveness.alive = True
        return process

    @property
    def call_count(self) -> int:
        return len(self.invocations)


class StaticPermissionChecker:
    def __init__(self, screen_recording: bool = True, microphone: bool = True):
        self.result = PermissionsCheck(screen_recording=screen_recording, microphone=microphone)

    def check(self) -> PermissionsCheck:
        return self.result


# =============================================================================
# Display fakes
# =============================================================================

def make_monitor(monitor_id: int, is_default: bool = False, name: Optional[str] = None) -> MonitorDevice:
    return MonitorDevice(
        id=monitor_id,
        name=name or f"Display {monitor_id}",
        is_default=is_default,
        width=1920,
        height=1080,
    )


class FakeEnumerator:
    """Monitor enumerator returning a mutable list of displays."""

    def __init__(self, monitors: Optional[Iterable[MonitorDevice]] = None, error: Optional[str] = None):
        self.monitors = list(monitors or [])
        self.error = error
        self.calls = 0

    async def list_monitors(self) -> List[MonitorDevice]:
        self.calls += 1
        if self.error:
            raise CollaboratorQueryFailure(self.error)
        return list(self.monitors)


class FakeVisionManager:
    """Vision manager recording start/stop calls."""

    def __init__(
        self,
        active: Iterable[int] = (),
        status: VisionManagerStatus = VisionManagerStatus.RUNNING,
    ):
        self.active = set(active)
        self.current_status = status
        self.started: List[tuple] = []
        self.stopped: List[int] = []
        self.fail_start: set = set()
        self.fail_stop: set = set()

    async def status(self) -> VisionManagerStatus:
        return self.current_status

    async def active_monitors(self) -> List[int]:
        return sorted(self.active)

    async def start_monitor_direct(self, monitor_id: int, device: MonitorDevice) -> None:
        if monitor_id in self.fail_start:
            raise RuntimeError(f"capture failed on {monitor_id}")
        self.started.append((monitor_id, device))
        self.active.add(monitor_id)

    async def stop_monitor(self, monitor_id: int) -> None:
        if monitor_id in self.fail_stop:
            raise RuntimeError(f"stop failed on {monitor_id}")
        self.stopped.append(monitor_id)
        self.active.discard(monitor_id)
