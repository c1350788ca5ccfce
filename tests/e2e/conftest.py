"""Fixtures for tests that run real processes named ``thadm-recorder``.

The recorder is stood in for by a shell script of the same name, so the
process table, signals and exit-status collection are all real while no
capture takes place. Termination is by image name, which means these
tests would also stop a genuine recorder; they are marked ``recorder``
and skip when one is already running.

This file provides:
- fake_recorder: writes the script and returns its path
- process_supervisor: ProcessSupervisor wired to the real liveness check
  and POSIX terminator
"""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Callable, Iterator

import psutil
import pytest

from thadm_host.core.liveness import LivenessChecker
from thadm_host.core.permissions import GrantedPermissionChecker
from thadm_host.core.settings_store import MemorySettingsStore
from thadm_host.core.supervisor import ProcessSupervisor
from thadm_host.core.terminators import PosixTerminator


@pytest.fixture(autouse=True)
def require_linux_process_names():
    # A script's process name is its file name on Linux; elsewhere it is the shell's.
    if not sys.platform.startswith("linux"):
        pytest.skip("script process names only match the recorder image on Linux")


@pytest.fixture
def liveness() -> Iterator[LivenessChecker]:
    checker = LivenessChecker()
    if checker.is_alive_sync():
        pytest.skip(f"a {checker.image_name} process is already running")
    yield checker
    for proc in checker.find_processes():
        try:
            proc.send_signal(signal.SIGKILL)
        except psutil.Error:
            continue


@pytest.fixture
def fake_recorder(tmp_path: Path) -> Callable[[str], Path]:
    def write(script: str) -> Path:
        path = tmp_path / "thadm-recorder"
        path.write_text(script, encoding="utf-8")
        path.chmod(0o755)
        return path

    return write


@pytest.fixture
def process_supervisor(liveness: LivenessChecker) -> Callable[..., ProcessSupervisor]:
    def factory(program: Path, **overrides) -> ProcessSupervisor:
        kwargs = dict(
            program=str(program),
            liveness=liveness,
            terminator=PosixTerminator(liveness),
            permissions=GrantedPermissionChecker(),
            poll_attempts=10,
            poll_interval=0.2,
        )
        kwargs.update(overrides)
        return ProcessSupervisor(MemorySettingsStore({"settings": {}}), **kwargs)

    return factory
