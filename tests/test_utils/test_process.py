"""Tests for subprocess helpers."""

import asyncio
import sys

import pytest

from dockyard.utils.process import stream_command


@pytest.mark.asyncio
class TestStreamCommand:
    """Test stream_command()."""

    async def test_writes_log_file(self, tmp_path):
        log_file = tmp_path / "build.log"
        cmd = [sys.executable, "-u", "-c", "import sys; print('step 1'); print('oops', file=sys.stderr)"]

        result = await stream_command(cmd, log_file=log_file)

        assert result.returncode == 0
        assert log_file.read_text().splitlines() == ["step 1", "oops"]
        assert result.stdout == "step 1\noops"

    async def test_keeps_tail(self):
        cmd = [sys.executable, "-c", "for i in range(10): print(i)"]

        result = await stream_command(cmd, tail_lines=3)

        assert result.stdout == "7\n8\n9"

    async def test_nonzero_exit(self):
        result = await stream_command([sys.executable, "-c", "raise SystemExit(3)"])

        assert result.returncode == 3

    async def test_cancellation_closes_log(self, tmp_path):
        log_file = tmp_path / "build.log"
        cmd = [sys.executable, "-u", "-c", "import time; print('started', flush=True); time.sleep(30)"]

        task = asyncio.create_task(stream_command(cmd, log_file=log_file))
        for _ in range(100):
            await asyncio.sleep(0.05)
            if log_file.exists() and log_file.stat().st_size:
                break
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert log_file.read_text() == "started\n"

