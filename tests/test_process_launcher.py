"""Tests for process spawn/wait outcomes."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from unittest.mock import MagicMock, AsyncMock
from visionhub.services.process_launcher import Exited, Failed, ProcessLauncher, Spawned


def fake_process(stderr_bytes=b"", returncode=0):
    reader = asyncio.StreamReader()
    reader.feed_data(stderr_bytes)
    reader.feed_eof()
    process = MagicMock()
    process.pid = 4242
    process.stderr = reader
    process.wait = AsyncMock(return_value=returncode)
    return process


class TestProcessLauncher:
    @pytest.mark.asyncio
    async def test_missing_executable_is_a_failed_outcome(self):
        outcome = await ProcessLauncher().spawn(["/nonexistent/visionhub-ffmpeg", "-version"], label="x")
        assert isinstance(outcome, Failed)
        assert "/nonexistent/visionhub-ffmpeg" in outcome.reason

    @pytest.mark.asyncio
    async def test_wait_collects_stderr_tail_across_carriage_returns(self):
        process = fake_process(b"frame=1\rframe=2\nConnection refused\n", returncode=1)

        outcome = await ProcessLauncher().wait(Spawned(process, "cam"))

        assert outcome == Exited(1, ("frame=1", "frame=2", "Connection refused"))
        assert not outcome.ok

    @pytest.mark.asyncio
    async def test_wait_keeps_only_last_lines(self):
        noise = b"".join(f"frame={i}\r".encode() for i in range(100))
        outcome = await ProcessLauncher().wait(Spawned(fake_process(noise), "cam"))

        assert outcome.ok
        assert len(outcome.stderr_tail) == 20
        assert outcome.stderr_tail[-1] == "frame=99"

    @pytest.mark.asyncio
    async def test_wait_error_is_a_failed_outcome(self):
        process = fake_process()
        process.wait = AsyncMock(side_effect=ChildProcessError("no child"))

        outcome = await ProcessLauncher().wait(Spawned(process, "cam"))

        assert isinstance(outcome, Failed)
        assert "4242" in outcome.reason

    def test_terminate_reports_already_gone(self):
        process = MagicMock()
        process.terminate.side_effect = ProcessLookupError
        assert ProcessLauncher().terminate(Spawned(process)) is False

        process.terminate.side_effect = None
        assert ProcessLauncher().terminate(Spawned(process)) is True

    def test_kill_ignores_missing_process(self):
        process = MagicMock()
        process.kill.side_effect = ProcessLookupError
        ProcessLauncher().kill(Spawned(process))
        process.kill.assert_called_once()
