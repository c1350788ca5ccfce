"""Unit tests for EventRelay."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from thadm_host.core.errors import MalformedOutput
from thadm_host.core.event_relay import (
    SIDECAR_LOG_EVENT,
    EventRelay,
    WorkerEvent,
    WorkerEventKind,
    decode_line,
)

from tests.unit.fakes import FakeProcess


class Collector:
    def __init__(self):
        self.events = []

    def __call__(self, name, payload):
        self.events.append((name, payload))


class TestDecodeLine:

    def test_strips_line_terminators(self):
        assert decode_line("stdout", b"hello\r\n") == "hello"

    def test_raises_on_invalid_utf8(self):
        with pytest.raises(MalformedOutput) as excinfo:
            decode_line("stderr", b"bad \xff byte\n")
        assert excinfo.value.stream == "stderr"
        assert excinfo.value.raw == b"bad \xff byte\n"


class TestWorkerEvent:

    def test_exit_code(self):
        event = WorkerEvent.terminated(3)
        assert event.exit_code == 3
        assert event.signal is None

    def test_negative_return_code_is_signal(self):
        event = WorkerEvent.terminated(-9)
        assert event.exit_code is None
        assert event.signal == 9


class TestEventRelay:

    @pytest.mark.asyncio
    async def test_publishes_stdout_and_stderr(self):
        process = FakeProcess(stdout=b"frame captured\n", stderr=b"ocr failed\n")
        collector = Collector()
        relay = EventRelay(process, observers=[collector])

        process.finish(0)
        await relay.run()

        assert sorted(collector.events) == sorted([
            (SIDECAR_LOG_EVENT, "frame captured"),
            (SIDECAR_LOG_EVENT, "ERROR: ocr failed"),
        ])

    @pytest.mark.asyncio
    async def test_stdout_order_preserved(self):
        process = FakeProcess(stdout=b"one\ntwo\nthree\n")
        collector = Collector()
        relay = EventRelay(process, observers=[collector])

        process.finish(0)
        await relay.run()

        assert [payload for _, payload in collector.events] == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_events_end_with_termination(self):
        process = FakeProcess(stdout=b"bye\n")
        relay = EventRelay(process)

        process.finish(-15)
        events = [event async for event in relay.events()]

        assert events[0] == WorkerEvent(WorkerEventKind.STDOUT, line="bye")
        assert events[-1] == WorkerEvent(WorkerEventKind.TERMINATED, signal=15)

    @pytest.mark.asyncio
    async def test_blank_lines_forwarded(self):
        process = FakeProcess(stdout=b"\n\r\nreal\n")
        collector = Collector()
        relay = EventRelay(process, observers=[collector])

        process.finish(0)
        await relay.run()

        assert collector.events == [
            (SIDECAR_LOG_EVENT, ""),
            (SIDECAR_LOG_EVENT, ""),
            (SIDECAR_LOG_EVENT, "real"),
        ]

    @pytest.mark.asyncio
    async def test_malformed_output_republished_lossy(self, caplog):
        process = FakeProcess(stdout=b"caf\xe9\n")
        collector = Collector()
        relay = EventRelay(process, observers=[collector])

        process.finish(0)
        with caplog.at_level(logging.WARNING, logger="thadm_host"):
            await relay.run()

        assert collector.events == [(SIDECAR_LOG_EVENT, "caf\ufffd")]
        assert any("non-UTF-8" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_on_closed_called_once_with_pid(self):
        process = FakeProcess(pid=777)
        on_closed = AsyncMock()
        relay = EventRelay(process, on_closed=on_closed)

        process.finish(0)
        await relay.run()

        on_closed.assert_awaited_once_with(777)

    @pytest.mark.asyncio
    async def test_on_closed_called_when_cancelled(self):
        process = FakeProcess(pid=778)
        on_closed = AsyncMock()
        relay = EventRelay(process, on_closed=on_closed)

        task = asyncio.create_task(relay.run())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        on_closed.assert_awaited_once_with(778)

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_stop_relay(self):
        process = FakeProcess(stdout=b"a\nb\n")
        collector = Collector()

        def broken(name, payload):
            raise RuntimeError("observer down")

        relay = EventRelay(process, observers=[broken, collector])

        process.finish(0)
        await relay.run()

        assert [payload for _, payload in collector.events] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_async_observer_awaited(self):
        process = FakeProcess(stdout=b"hello\n")
        observer = AsyncMock()
        relay = EventRelay(process, observers=[observer])

        process.finish(0)
        await relay.run()

        observer.assert_awaited_once_with(SIDECAR_LOG_EVENT, "hello")
