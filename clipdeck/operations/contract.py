"""What operation builders receive and return.

Builders are pure: everything they need (probe results, the resolved
output path, a per-operation work directory, settings) comes in through
:class:`BuildEnv`, and everything they want done comes back as a
:class:`BuildPlan`.  The orchestrator does all the I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from ..config import Settings
from ..core.executor.command_builder import CommandBuilder, CommandSpec
from ..core.video.analyzer import MediaProbeResult
from ..core.video.formats import AudioCodec, AudioFormat
from ..errors import InvalidParameters


@dataclass(slots=True)
class BuildPlan:
    """Ordered FFmpeg passes for one operation.

    Fields
    ------
    passes : list[CommandSpec]
        Run strictly in order; the last one writes ``output_path``.
    temp_artifacts : list[str]
        Intermediate files the passes create.  Deleted when the operation
        ends, on success and on failure.
    staged_files : dict[str, str]
        Text files (concat lists) to write before the first pass runs.
        They are temp artifacts too.
    """

    passes: list[CommandSpec] = field(default_factory=list)
    temp_artifacts: list[str] = field(default_factory=list)
    staged_files: dict[str, str] = field(default_factory=dict)

    def add(self, spec: CommandSpec) -> BuildPlan:
        self.passes.append(spec)
        return self

    def temp(self, path: str | Path) -> str:
        """Register an intermediate file and return its path."""
        path = str(path)
        self.temp_artifacts.append(path)
        return path

    def stage(self, path: str | Path, text: str) -> str:
        path = str(path)
        self.staged_files[path] = text
        return path


@dataclass(frozen=True)
class BuildEnv:
    """Inputs a builder may read besides the request itself."""

    probes: Mapping[str, MediaProbeResult]
    output_path: str
    work_dir: str
    settings: Settings = field(default_factory=Settings)
    ffmpeg: str = "ffmpeg"

    def probe(self, path: str) -> MediaProbeResult:
        try:
            return self.probes[path]
        except KeyError:
            raise InvalidParameters(f"No probe result for {path}") from None

    def builder(self) -> CommandBuilder:
        return CommandBuilder(self.ffmpeg)

    def work_file(self, name: str) -> str:
        return str(Path(self.work_dir) / name)

    @property
    def output_ext(self) -> str:
        return Path(self.output_path).suffix.lower()

    def audio_format(self) -> AudioFormat:
        """Audio encoding for the output container.

        MP3 outputs get LAME at the configured bitrate, everything else uses
        the configured codec (AAC by default).
        """
        fmt = AudioFormat.from_settings(self.settings.audio)
        if self.output_ext == ".mp3":
            return fmt.model_copy(update={"codec": AudioCodec.MP3.value})
        return fmt
