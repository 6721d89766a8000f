"""Media analysis and metadata extraction using FFprobe."""

import json
import logging
import math
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ...errors import ProbeError, SpawnError
from ..executor.command_builder import CommandSpec, Executable
from ..executor.process_manager import ProcessRunner

logger = logging.getLogger("clipdeck")


class MediaProbeResult(BaseModel):
    """Metadata for one media file, produced fresh by every probe."""
    path: str
    duration: float = Field(ge=0)
    has_audio_stream: bool
    has_video_stream: bool
    width: Optional[int] = None
    height: Optional[int] = None
    frame_rate: Optional[float] = None
    audio_sample_rate: Optional[int] = None
    raw_format: dict = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def resolution(self) -> Optional[tuple[int, int]]:
        """Video resolution as (width, height)."""
        if self.width and self.height:
            return (self.width, self.height)
        return None


def _parse_frame_rate(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        num, den = map(int, value.split("/"))
        return num / den if den != 0 else None
    except (ValueError, ZeroDivisionError):
        return None


def parse_probe_output(path: str, stdout: str) -> MediaProbeResult:
    """Turn ``ffprobe -print_format json`` output into a MediaProbeResult.

    Raises:
        ProbeError: On unparsable JSON or a missing/invalid duration.
    """
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(f"Failed to parse ffprobe output for {path}", stdout) from e
    if not isinstance(data, dict):
        raise ProbeError(f"Unexpected ffprobe output for {path}", stdout)

    format_info = data.get("format") or {}
    streams = data.get("streams") or []

    try:
        duration = float(format_info.get("duration"))
    except (TypeError, ValueError):
        duration = math.nan
    if math.isnan(duration) or math.isinf(duration) or duration < 0:
        raise ProbeError(f"Invalid duration for {path}: {format_info.get('duration')!r}")

    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)

    return MediaProbeResult(
        path=path,
        duration=duration,
        has_audio_stream=audio is not None,
        has_video_stream=video is not None,
        width=int(video["width"]) if video and video.get("width") else None,
        height=int(video["height"]) if video and video.get("height") else None,
        frame_rate=_parse_frame_rate(video.get("r_frame_rate")) if video else None,
        audio_sample_rate=int(audio["sample_rate"]) if audio and audio.get("sample_rate") else None,
        raw_format=format_info,
    )


class MediaAnalyzer:
    """Analyzes media files using ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe", runner: Optional[ProcessRunner] = None):
        """Initialize the analyzer.

        Args:
            ffprobe_path: Path to the ffprobe executable.
            runner: Process runner used to spawn ffprobe.
        """
        self.ffprobe_path = ffprobe_path
        self.runner = runner or ProcessRunner()

    def probe_command(self, path: str | Path) -> CommandSpec:
        return CommandSpec(
            executable=Executable.FFPROBE,
            argv=(
                self.ffprobe_path,
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                str(path),
            ),
            description="probe",
        )

    def audio_stream_command(self, path: str | Path) -> CommandSpec:
        return CommandSpec(
            executable=Executable.FFPROBE,
            argv=(
                self.ffprobe_path,
                "-v", "error",
                "-select_streams", "a:0",
                "-show_entries", "stream=codec_type",
                "-of", "default=noprint_wrappers=1:nokey=1",
                str(path),
            ),
            description="audio stream check",
        )

    async def _run(self, spec: CommandSpec) -> str:
        try:
            outcome = await self.runner.run(spec)
        except SpawnError as e:
            raise ProbeError(f"ffprobe could not be started: {e.message}") from e
        if not outcome.success:
            raise ProbeError(
                f"ffprobe failed on {spec.argv[-1]} (exit code {outcome.exit_code})",
                outcome.stderr_text or None,
            )
        return outcome.stdout_text

    async def probe(self, path: str | Path) -> MediaProbeResult:
        """Analyze a media file and extract metadata.

        Raises:
            ProbeError: If ffprobe is missing, fails, or returns bad data.
        """
        stdout = await self._run(self.probe_command(path))
        result = parse_probe_output(str(path), stdout)
        logger.debug(
            "Probed %s: duration=%.3f audio=%s video=%s",
            path, result.duration, result.has_audio_stream, result.has_video_stream,
        )
        return result

    async def has_audio_stream(self, path: str | Path) -> bool:
        """Cheaper check that only asks for the first audio stream."""
        stdout = await self._run(self.audio_stream_command(path))
        return stdout.strip() == "audio"
