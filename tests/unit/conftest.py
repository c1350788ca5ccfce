"""Unit test fixtures for isolated, fast test execution.

Unit tests never launch a real recorder, touch the process table or talk
to the network; the fakes live in ``tests/unit/fakes.py`` and this file
wires them into fixtures:

- isolated_env, memory_store, fixed_now
- liveness, terminator, launcher, supervisor_factory
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

from thadm_host.core.settings_store import MemorySettingsStore
from thadm_host.core.supervisor import ProcessSupervisor

from tests.unit.fakes import (
    FIXED_NOW,
    FakeEnumerator,
    FakeLauncher,
    FakeLiveness,
    FakeTerminator,
    StaticPermissionChecker,
    make_monitor,
)


# =============================================================================
# Isolated Environment Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME and the host state directory at a temporary directory.

    Returns:
        Path to the isolated working directory
    """
    work_dir = tmp_path / "work"
    work_dir.mkdir()

    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("THADM_HOST_STATE_DIR", str(tmp_path / "state"))

    original_cwd = os.getcwd()
    os.chdir(work_dir)

    yield work_dir

    os.chdir(original_cwd)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def memory_store() -> MemorySettingsStore:
    """Settings store holding an empty settings object."""
    return MemorySettingsStore({"settings": {}})


# =============================================================================
# Supervisor fixtures
# =============================================================================

@pytest.fixture
def liveness() -> FakeLiveness:
    return FakeLiveness()


@pytest.fixture
def terminator(liveness: FakeLiveness) -> FakeTerminator:
    return FakeTerminator(liveness)


@pytest.fixture
def launcher(liveness: FakeLiveness, terminator: FakeTerminator) -> FakeLauncher:
    return FakeLauncher(liveness, terminator)


@pytest.fixture
def supervisor_factory(
    memory_store: MemorySettingsStore,
    liveness: FakeLiveness,
    terminator: FakeTerminator,
    launcher: FakeLauncher,
) -> Callable[..., ProcessSupervisor]:
    """Factory for supervisors wired to the shared fakes.

    Keyword arguments override the defaults passed to ProcessSupervisor.
    """
    def factory(**overrides: Any) -> ProcessSupervisor:
        kwargs: Dict[str, Any] = dict(
            program="/opt/thadm/thadm-recorder",
            liveness=liveness,
            terminator=terminator,
            permissions=StaticPermissionChecker(),
            monitor_lookup=FakeEnumerator([make_monitor(1, is_default=True)]),
            launcher=launcher,
            poll_attempts=6,
            poll_interval=0,
            current_pid=999,
        )
        kwargs.update(overrides)
        store = kwargs.pop("store", memory_store)
        return ProcessSupervisor(store, **kwargs)

    return factory
