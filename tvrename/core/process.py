"""Async external process execution.

Every external tool (ffprobe, ffmpeg, mkvextract, OCR, whisper) is started
through ``run_process`` so cancellation and timeouts terminate the child
instead of leaving it running after the caller has gone away.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Shell convention for "command not found"
EXIT_NOT_FOUND = 127


@dataclass
class ProcessResult:
    """Captured result of an external process."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_summary(self) -> str:
        """Last few stderr lines, for log messages."""
        lines = [line for line in self.stderr.strip().splitlines() if line.strip()]
        tail = " | ".join(lines[-3:])
        return f"{Path(self.args[0]).name} exited with code {self.returncode}" + (
            f": {tail}" if tail else ""
        )


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Kill a child process and reap it."""
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()


async def run_process(args: Sequence[str], timeout: float | None = None) -> ProcessResult:
    """Run an external command and capture its output.

    Args:
        args: Executable followed by its arguments
        timeout: Optional limit in seconds; the child is killed when exceeded

    Returns:
        ProcessResult; a missing executable is reported with exit code 127

    Raises:
        asyncio.CancelledError: After the child has been killed
        TimeoutError: After the child has been killed
    """
    cmd = [str(a) for a in args]
    logger.debug(f"Running: {' '.join(cmd)}")

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        logger.error(f"{cmd[0]} not found. Install it or configure its path.")
        return ProcessResult(cmd, EXIT_NOT_FOUND, "", f"{cmd[0]}: command not found")
    except PermissionError as e:
        logger.error(f"Cannot execute {cmd[0]}: {e}")
        return ProcessResult(cmd, EXIT_NOT_FOUND, "", str(e))

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except (asyncio.CancelledError, TimeoutError):
        logger.debug(f"Terminating {cmd[0]} (pid {proc.pid})")
        await asyncio.shield(_terminate(proc))
        raise

    result = ProcessResult(
        cmd,
        proc.returncode,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )
    if not result.ok:
        logger.debug(result.error_summary)
    return result
