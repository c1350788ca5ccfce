"""Pytest fixtures for API unit tests.

Provides an APIController wired to the supervisor fakes and helpers for
building aiohttp test clients, so the routes run end to end without a
real recorder, display or settings file.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Coroutine, Optional, TypeVar

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from thadm_host.core.api.controller import APIController
from thadm_host.core.api.server import APIServer
from thadm_host.core.monitor_reconciler import MonitorReconciler
from thadm_host.core.settings_store import MemorySettingsStore
from thadm_host.core.supervisor import ProcessSupervisor

from tests.unit.fakes import FakeEnumerator, FakeVisionManager, make_monitor


T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously for testing."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def create_test_app(controller: APIController, localhost_only: bool = True) -> web.Application:
    """Create a test aiohttp application with middlewares and all routes registered."""
    return APIServer(controller, localhost_only=localhost_only).create_app()


async def shutdown_supervisor(supervisor: ProcessSupervisor) -> None:
    """Stop the fake recorder and wait for its relay so the loop closes cleanly."""
    await supervisor.stop()
    await supervisor.join_relays(timeout=2)


@pytest.fixture
def enumerator() -> FakeEnumerator:
    return FakeEnumerator([
        make_monitor(1, is_default=True, name="Built-in"),
        make_monitor(2, name="External"),
    ])


@pytest.fixture
def controller_factory(
    supervisor_factory: Callable[..., ProcessSupervisor],
    memory_store: MemorySettingsStore,
    enumerator: FakeEnumerator,
) -> Callable[..., APIController]:
    """Factory for controllers; keyword arguments go to the supervisor factory."""

    def factory(reconciler: Optional[MonitorReconciler] = None, **supervisor_overrides: Any) -> APIController:
        return APIController(
            supervisor_factory(**supervisor_overrides),
            memory_store,
            enumerator,
            reconciler=reconciler,
            version="0.1.0-test",
        )

    return factory


@pytest.fixture
def controller(controller_factory: Callable[..., APIController]) -> APIController:
    return controller_factory()


@pytest.fixture
def reconciler(enumerator: FakeEnumerator) -> MonitorReconciler:
    return MonitorReconciler(FakeVisionManager(active={1}), enumerator)


@pytest.fixture
def api_client(controller: APIController):
    """Create an aiohttp test client.

    Usage:
        def test_endpoint(api_client):
            async def do_test():
                async with api_client as client:
                    resp = await client.get("/api/v1/health")
                    assert resp.status == 200
            run_async(do_test())
    """
    return TestClient(TestServer(create_test_app(controller)))
