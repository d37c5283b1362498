"""Subprocess helpers."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result from running a command."""
    returncode: int
    stdout: str = ""


async def _terminate(process: asyncio.subprocess.Process):
    if process.returncode is None:
        process.kill()
        await process.wait()


async def stream_command(
    cmd: List[str],
    log_file: Optional[Path] = None,
    tail_lines: int = 50,
    **kwargs
) -> CommandResult:
    """Run a command, streaming combined output line by line.

    Output is written to ``log_file`` when given. The file is flushed and
    closed and the process is killed on every exit path, cancellation
    included. ``stdout`` of the result holds the last ``tail_lines`` lines.
    """
    logger.debug(f"Streaming command: {' '.join(cmd)}")

    sink = open(log_file, "w", encoding="utf-8", buffering=1) if log_file else None
    process = None
    tail: List[str] = []
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            **kwargs
        )
        async for raw in process.stdout:
            line = raw.decode(errors="replace")
            if sink:
                sink.write(line)
            tail.append(line.rstrip("\n"))
            if len(tail) > tail_lines:
                tail.pop(0)
        await process.wait()
    finally:
        if sink:
            sink.flush()
            sink.close()
        if process is not None:
            await _terminate(process)

    return CommandResult(returncode=process.returncode, stdout="\n".join(tail))
