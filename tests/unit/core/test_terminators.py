"""Unit tests for the platform terminators."""

import signal
from unittest.mock import AsyncMock, MagicMock, patch

import psutil
import pytest

from thadm_host.core.terminators import (
    PosixTerminator,
    WindowsTerminator,
    select_terminator,
)


class StubLiveness:
    def __init__(self, processes):
        self.processes = processes

    def find_processes(self):
        return list(self.processes)


def mock_taskkill(returncode: int = 0, stderr: bytes = b"") -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(b"", stderr))
    proc.returncode = returncode
    return proc


class TestPosixTerminator:

    @pytest.mark.asyncio
    async def test_terminate_sends_sigterm_to_every_match(self):
        first, second = MagicMock(pid=1), MagicMock(pid=2)
        terminator = PosixTerminator(StubLiveness([first, second]))

        await terminator.terminate()

        first.send_signal.assert_called_once_with(signal.SIGTERM)
        second.send_signal.assert_called_once_with(signal.SIGTERM)

    @pytest.mark.asyncio
    async def test_force_kill_sends_sigkill(self):
        proc = MagicMock(pid=3)
        await PosixTerminator(StubLiveness([proc])).force_kill()
        proc.send_signal.assert_called_once_with(signal.SIGKILL)

    def test_signal_all_tolerates_races(self):
        gone = MagicMock(pid=4)
        gone.send_signal.side_effect = psutil.NoSuchProcess(pid=4)
        denied = MagicMock(pid=5)
        denied.send_signal.side_effect = psutil.AccessDenied(pid=5)
        ok = MagicMock(pid=6)

        terminator = PosixTerminator(StubLiveness([gone, denied, ok]))

        assert terminator._signal_all(signal.SIGTERM) == 1

    @pytest.mark.asyncio
    async def test_nothing_running(self):
        await PosixTerminator(StubLiveness([])).terminate()


class TestWindowsTerminator:

    @pytest.mark.asyncio
    async def test_force_kill_runs_taskkill(self):
        with patch(
            "thadm_host.core.terminators.asyncio.create_subprocess_exec",
            AsyncMock(return_value=mock_taskkill()),
        ) as create:
            await WindowsTerminator("thadm-recorder.exe").force_kill()

        assert create.await_count == 1
        assert create.await_args.args == ("taskkill", "/F", "/T", "/IM", "thadm-recorder.exe")

    @pytest.mark.asyncio
    async def test_not_found_is_success(self):
        proc = mock_taskkill(returncode=128, stderr=b'ERROR: The process "thadm-recorder.exe" not found.')
        with patch(
            "thadm_host.core.terminators.asyncio.create_subprocess_exec",
            AsyncMock(return_value=proc),
        ) as create:
            await WindowsTerminator("thadm-recorder.exe").force_kill()

        assert create.await_count == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_cmd(self):
        create = AsyncMock(side_effect=[FileNotFoundError("taskkill"), mock_taskkill()])
        with patch("thadm_host.core.terminators.asyncio.create_subprocess_exec", create):
            await WindowsTerminator("thadm-recorder.exe").force_kill()

        assert create.await_count == 2
        assert create.await_args_list[1].args[:2] == ("cmd", "/C")

    @pytest.mark.asyncio
    async def test_all_methods_failing_does_not_raise(self):
        create = AsyncMock(side_effect=OSError("no shell"))
        with patch("thadm_host.core.terminators.asyncio.create_subprocess_exec", create):
            await WindowsTerminator("thadm-recorder.exe").force_kill()

        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_terminate_waits_then_kills(self):
        terminator = WindowsTerminator("thadm-recorder.exe", grace_period=0)
        with patch.object(terminator, "force_kill", AsyncMock()) as force_kill:
            await terminator.terminate()
        force_kill.assert_awaited_once()


class TestSelectTerminator:

    def test_windows(self):
        assert isinstance(select_terminator("win32"), WindowsTerminator)

    @pytest.mark.parametrize("platform", ["darwin", "linux"])
    def test_posix(self, platform):
        liveness = StubLiveness([])
        terminator = select_terminator(platform, liveness)
        assert isinstance(terminator, PosixTerminator)
        assert terminator.liveness is liveness
