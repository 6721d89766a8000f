"""Process management for FFMPEG execution."""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from ...errors import SpawnError
from .command_builder import CommandSpec

logger = logging.getLogger("clipdeck")

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class ExitOutcome:
    """Result of one subprocess run.

    The runner never judges success; callers compare ``exit_code`` to 0.
    """
    exit_code: int
    stderr_text: str
    stdout_text: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def error_summary(self) -> str:
        """Most relevant diagnostic line from stderr."""
        return parse_error(self.stderr_text)


def parse_error(stderr: str) -> str:
    """Extract meaningful error message from ffmpeg stderr."""
    lines = stderr.strip().split("\n")

    error_patterns = [
        r"Error.*",
        r"Invalid.*",
        r"No such file.*",
        r".*not found.*",
        r"Permission denied.*",
        r"Discarding.*",
    ]

    for line in reversed(lines):
        for pattern in error_patterns:
            if re.search(pattern, line, re.IGNORECASE):
                return line.strip()

    for line in reversed(lines):
        if line.strip():
            return line.strip()

    return "Unknown error"


def _split_lines(buffer: bytes) -> tuple[list[str], bytes]:
    """Split on both ``\\n`` and ``\\r``; FFmpeg redraws its stats line with ``\\r``."""
    parts = re.split(rb"\r\n|\r|\n", buffer)
    tail = parts.pop()
    return [p.decode("utf-8", errors="replace") for p in parts], tail


class ProcessRunner:
    """Runs FFmpeg/FFprobe and streams stderr as progress text."""

    def __init__(self, chunk_size: int = 4096):
        self.chunk_size = chunk_size

    async def run(
        self,
        spec: CommandSpec,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExitOutcome:
        """Execute ``spec`` and wait for it to exit.

        Args:
            spec: Command to run; ``argv[0]`` is the binary.
            on_progress: Called once per non-empty stderr line.

        Returns:
            ExitOutcome with the exit code and the full stderr text.

        Raises:
            SpawnError: If the binary cannot be launched.
        """
        logger.debug("Running: %s", spec.to_string())
        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise SpawnError(f"Cannot launch {spec.argv[0]}: {e}") from e
        except OSError as e:
            raise SpawnError(f"{spec.executable.value} error: {e}") from e

        stdout_data: list[bytes] = []
        stderr_lines: list[str] = []

        async def read_stderr():
            pending = b""
            while True:
                chunk = await process.stderr.read(self.chunk_size)
                if not chunk:
                    break
                lines, pending = _split_lines(pending + chunk)
                for line in lines:
                    stderr_lines.append(line)
                    if on_progress and line.strip():
                        on_progress(line)
            if pending:
                line = pending.decode("utf-8", errors="replace")
                stderr_lines.append(line)
                if on_progress and line.strip():
                    on_progress(line)

        async def read_stdout():
            while True:
                chunk = await process.stdout.read(self.chunk_size)
                if not chunk:
                    break
                stdout_data.append(chunk)

        try:
            await asyncio.gather(read_stdout(), read_stderr())
            await process.wait()
        except BaseException:
            # Cancellation or a failing progress callback; never leave the child running
            await self._terminate(process)
            raise

        return ExitOutcome(
            exit_code=process.returncode,
            stderr_text="\n".join(stderr_lines),
            stdout_text=b"".join(stdout_data).decode("utf-8", errors="replace"),
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Kill a child whose caller gave up on it and reap it."""
        if process.returncode is not None:
            return
        logger.info("Stopping process %s", process.pid)
        try:
            process.kill()
        except ProcessLookupError:
            return
        await asyncio.shield(process.wait())
