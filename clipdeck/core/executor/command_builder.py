"""FFMPEG command builder for constructing complex filter chains.

Filter graphs are built as small objects (``Filter`` -> ``FilterChain`` ->
``FilterGraph``) and serialised once, when the final :class:`CommandSpec` is
produced.  Tests can therefore inspect a graph by structure instead of by
exact string.
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from ...errors import InvalidParameters

ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0


def fmt_num(value: float | int) -> str:
    """Render a number for a filter argument without float noise.

    ``3.0`` -> ``"3"``, ``2.5`` -> ``"2.5"``, ``1/3`` -> ``"0.333333"``.
    """
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _render(value) -> str:
    if isinstance(value, (int, float)):
        return fmt_num(value)
    return str(value)


@dataclass
class Filter:
    """Represents a single FFMPEG filter.

    ``args`` are positional values (``atempo=2``, ``adelay=500|500``);
    ``params`` are named ones (``scale=w=1280:h=720``).  A ``None`` param
    value renders as a bare flag.
    """
    name: str
    params: dict[str, str | int | float | None] = field(default_factory=dict)
    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    args: list[str | int | float] = field(default_factory=list)

    def to_string(self) -> str:
        """Convert filter to FFMPEG filter string."""
        parts = []

        for inp in self.inputs:
            parts.append(f"[{inp}]")

        options = [_render(a) for a in self.args]
        options.extend(
            f"{k}={_render(v)}" if v is not None else k
            for k, v in self.params.items()
        )
        if options:
            parts.append(f"{self.name}={':'.join(options)}")
        else:
            parts.append(self.name)

        for out in self.outputs:
            parts.append(f"[{out}]")

        return "".join(parts)


@dataclass
class FilterChain:
    """A chain of filters connected in sequence."""
    filters: list[Filter] = field(default_factory=list)

    def add(self, filter_obj: Filter) -> "FilterChain":
        """Add a filter to the chain."""
        self.filters.append(filter_obj)
        return self

    def add_filter(
        self,
        name: str,
        params: Optional[dict] = None,
        inputs: Optional[list[str]] = None,
        outputs: Optional[list[str]] = None,
        args: Optional[list] = None,
    ) -> "FilterChain":
        """Add a filter by parameters."""
        self.filters.append(Filter(
            name=name,
            params=params or {},
            inputs=inputs or [],
            outputs=outputs or [],
            args=args or [],
        ))
        return self

    def to_string(self) -> str:
        """Convert filter chain to FFMPEG filter string."""
        if not self.filters:
            return ""
        return ",".join(f.to_string() for f in self.filters)

    def __bool__(self) -> bool:
        return bool(self.filters)


@dataclass
class FilterGraph:
    """A ``-filter_complex`` graph: labelled chains joined by ``;``."""
    chains: list[FilterChain] = field(default_factory=list)

    def chain(
        self,
        inputs: Iterable[str],
        filters: Iterable[Union[Filter, str]],
        outputs: Iterable[str],
    ) -> FilterChain:
        """Append ``[inputs]f1,f2,...[outputs]`` and return the new chain."""
        built = FilterChain()
        for f in filters:
            built.add(Filter(name=f) if isinstance(f, str) else f)
        if not built.filters:
            raise ValueError("A filter chain needs at least one filter")
        built.filters[0].inputs = list(inputs)
        built.filters[-1].outputs = list(outputs)
        self.chains.append(built)
        return built

    def to_string(self) -> str:
        return ";".join(c.to_string() for c in self.chains)

    def __bool__(self) -> bool:
        return bool(self.chains)


class Executable(str, Enum):
    """External binaries a :class:`CommandSpec` can target."""
    FFMPEG = "ffmpeg"
    FFPROBE = "ffprobe"


@dataclass(frozen=True)
class CommandSpec:
    """One immutable subprocess invocation.

    ``argv[0]`` is the resolved binary.  ``filter_graph`` repeats the
    ``-filter_complex`` argument (if any) for logging and inspection.
    """
    executable: Executable
    argv: tuple[str, ...]
    filter_graph: Optional[str] = None
    description: str = ""

    @property
    def output_path(self) -> Optional[str]:
        """Last positional argument, which FFmpeg treats as the output."""
        return self.argv[-1] if len(self.argv) > 1 else None

    def option(self, flag: str) -> list[str]:
        """Values following every occurrence of ``flag`` in argv."""
        return [
            self.argv[i + 1]
            for i, arg in enumerate(self.argv[:-1])
            if arg == flag
        ]

    def to_string(self) -> str:
        """Shell-quoted rendering, for logs only."""
        return " ".join(shlex.quote(arg) for arg in self.argv)


@dataclass
class InputSpec:
    """One ``-i`` input together with the options placed before it."""
    path: str
    options: list[str] = field(default_factory=list)


@dataclass
class FFMPEGCommand:
    """Mutable draft of an FFmpeg invocation."""
    binary: str = "ffmpeg"
    inputs: list[InputSpec] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)
    output_options: list[str] = field(default_factory=list)
    video_filters: FilterChain = field(default_factory=FilterChain)
    audio_filters: FilterChain = field(default_factory=FilterChain)
    complex_filter: Optional[FilterGraph] = None

    def to_args(self) -> list[str]:
        """Convert command to list of arguments for subprocess."""
        args = [self.binary, "-y"]

        for inp in self.inputs:
            args.extend(inp.options)
            args.extend(["-i", inp.path])

        if self.complex_filter:
            args.extend(["-filter_complex", self.complex_filter.to_string()])
        else:
            vf = self.video_filters.to_string()
            if vf:
                args.extend(["-vf", vf])

        # -af is independent of -filter_complex
        af = self.audio_filters.to_string()
        if af:
            args.extend(["-af", af])

        args.extend(self.output_options)
        args.extend(self.outputs)

        return args


def atempo_chain(factor: float) -> list[float]:
    """Split a tempo ratio into stages accepted by ``atempo``.

    Each stage lies within ``[0.5, 2.0]`` and the product of all stages
    equals ``factor``: 4.0 -> [2.0, 2.0], 0.3 -> [0.5, 0.6].
    """
    if factor <= 0:
        raise InvalidParameters(f"Speed must be positive, got {factor}")

    if ATEMPO_MIN <= factor <= ATEMPO_MAX:
        return [factor]

    stages: list[float] = []
    remaining = factor
    if factor < ATEMPO_MIN:
        while remaining < ATEMPO_MIN:
            stages.append(ATEMPO_MIN)
            remaining /= ATEMPO_MIN
    else:
        while remaining > ATEMPO_MAX:
            stages.append(ATEMPO_MAX)
            remaining /= ATEMPO_MAX
    stages.append(remaining)
    return stages


def atempo_filters(factor: float) -> list[Filter]:
    """``atempo`` filters implementing ``factor``."""
    return [Filter("atempo", args=[stage]) for stage in atempo_chain(factor)]


class CommandBuilder:
    """Builder for constructing FFMPEG commands."""

    def __init__(self, binary: str = "ffmpeg"):
        self._binary = binary
        self._command = FFMPEGCommand(binary=binary)
        self._description = ""

    def describe(self, text: str) -> "CommandBuilder":
        """Attach a short human-readable label to the resulting spec."""
        self._description = text
        return self

    def input(
        self,
        path: str | Path,
        options: Optional[list[str]] = None,
    ) -> "CommandBuilder":
        """Add an input file."""
        self._command.inputs.append(InputSpec(str(path), list(options or [])))
        return self

    def lavfi(self, source: str) -> "CommandBuilder":
        """Add a generated libavfilter source (``anullsrc``, ``aevalsrc``...) as an input."""
        return self.input(source, ["-f", "lavfi"])

    def output(self, path: str | Path) -> "CommandBuilder":
        """Set output file."""
        self._command.outputs.append(str(path))
        return self

    def output_options(self, *options: str) -> "CommandBuilder":
        """Add output options."""
        self._command.output_options.extend(options)
        return self

    def map(self, *streams: str) -> "CommandBuilder":
        """Add ``-map`` entries; graph labels are wrapped in brackets."""
        for stream in streams:
            if ":" not in stream and not stream.startswith("["):
                stream = f"[{stream}]"
            self._command.output_options.extend(["-map", stream])
        return self

    def video_codec(self, codec: str, **params) -> "CommandBuilder":
        """Set video codec with optional parameters."""
        self._command.output_options.extend(["-c:v", codec])
        for key, value in params.items():
            if value is None:
                continue
            if key == "crf":
                self._command.output_options.extend(["-crf", str(value)])
            elif key == "preset":
                self._command.output_options.extend(["-preset", value])
            elif key == "bitrate":
                self._command.output_options.extend(["-b:v", value])
            elif key == "pixel_format":
                self._command.output_options.extend(["-pix_fmt", value])
        return self

    def audio_codec(self, codec: str, **params) -> "CommandBuilder":
        """Set audio codec with optional parameters."""
        self._command.output_options.extend(["-c:a", codec])
        for key, value in params.items():
            if value is None:
                continue
            if key == "bitrate":
                self._command.output_options.extend(["-b:a", value])
            elif key == "sample_rate":
                self._command.output_options.extend(["-ar", str(value)])
            elif key == "channels":
                self._command.output_options.extend(["-ac", str(value)])
            elif key == "quality":
                self._command.output_options.extend(["-q:a", str(value)])
        return self

    def copy_video(self) -> "CommandBuilder":
        return self.output_options("-c:v", "copy")

    def no_audio(self) -> "CommandBuilder":
        """Remove audio from output."""
        self._command.output_options.append("-an")
        return self

    def no_video(self) -> "CommandBuilder":
        """Remove video from output."""
        self._command.output_options.append("-vn")
        return self

    def vf(self, *filters: str | Filter) -> "CommandBuilder":
        """Add video filters."""
        for f in filters:
            if isinstance(f, str):
                self._command.video_filters.add_filter(f)
            else:
                self._command.video_filters.add(f)
        return self

    def af(self, *filters: str | Filter) -> "CommandBuilder":
        """Add audio filters."""
        for f in filters:
            if isinstance(f, str):
                self._command.audio_filters.add_filter(f)
            else:
                self._command.audio_filters.add(f)
        return self

    def scale(self, width: int | str, height: int | str, fit: bool = False) -> "CommandBuilder":
        """Add scale filter; ``fit`` keeps the aspect ratio inside the box."""
        params: dict = {"w": width, "h": height}
        if fit:
            params["force_original_aspect_ratio"] = "decrease"
        self._command.video_filters.add_filter("scale", params)
        return self

    def speed(self, factor: float, audio: bool = True) -> "CommandBuilder":
        """Change playback speed.

        Video uses ``setpts``; audio uses chained ``atempo`` stages because a
        single ``atempo`` only accepts 0.5-2.0.
        """
        self._command.video_filters.add_filter("setpts", args=[f"{fmt_num(1.0 / factor)}*PTS"])
        if audio:
            for f in atempo_filters(factor):
                self._command.audio_filters.add(f)
        return self

    def fps(self, rate: int | float) -> "CommandBuilder":
        """Set output frame rate."""
        self._command.video_filters.add_filter("fps", args=[rate])
        return self

    def complex_filter(self, graph: FilterGraph) -> "CommandBuilder":
        """Set complex filtergraph."""
        self._command.complex_filter = graph
        return self

    def build(self) -> CommandSpec:
        """Freeze the draft into a :class:`CommandSpec`."""
        graph = self._command.complex_filter
        return CommandSpec(
            executable=Executable.FFMPEG,
            argv=tuple(self._command.to_args()),
            filter_graph=graph.to_string() if graph else None,
            description=self._description,
        )

