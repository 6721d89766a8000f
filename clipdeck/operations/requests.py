"""Typed edit requests.

One frozen pydantic model per operation kind, discriminated by ``kind`` so
a request can be parsed straight from a YAML/JSON mapping::

    request = parse_request({"kind": "trim", "input_path": "clip.mp4",
                             "start": 2, "duration": 3})
"""

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from ..core.sanitize import is_audio_path
from ..errors import InvalidParameters, UnsupportedOperation


class OperationKind(str, Enum):
    TRIM = "trim"
    TRIM_VIDEO_ONLY = "trim_video_only"
    TRIM_AUDIO_ONLY = "trim_audio_only"
    TRIM_AUDIO_FILE = "trim_audio_file"
    RE_ENCODE = "re_encode"
    APPLY_FILTER = "apply_filter"
    ADD_AUDIO = "add_audio"
    ADD_TEXT = "add_text"
    MERGE_VIDEOS = "merge_videos"
    MERGE_AUDIOS = "merge_audios"
    EXTRACT_AUDIO = "extract_audio"
    ADJUST_VOLUME = "adjust_volume"
    ADJUST_SPEED = "adjust_speed"
    GENERATE_SILENCE = "generate_silence"
    GENERATE_WAVEFORM = "generate_waveform"
    ENSURE_AUDIO = "ensure_audio"


class InsertMode(str, Enum):
    """How inserted audio meets the existing track.

    ``mix`` sums both and keeps the video length, ``overwrite`` replaces the
    covered range, ``push`` splices the new audio in and lets the track grow.
    """
    MIX = "mix"
    OVERWRITE = "overwrite"
    PUSH = "push"


class OperationRequest(BaseModel):
    """Base for every request; immutable once constructed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    label: ClassVar[str] = "output"

    output_path: Optional[str] = None

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise InvalidParameters(
                f"Invalid {type(self).__name__} request: {exc}"
            ) from exc

    def input_paths(self) -> list[str]:
        """Every file the operation reads, primary input first."""
        path = getattr(self, "input_path", None)
        return [path] if path else []

    def default_ext(self) -> str:
        """Extension used when no output path was requested."""
        inputs = self.input_paths()
        if inputs and is_audio_path(inputs[0]):
            return ".mp3"
        return ".mp4"


class _RangeRequest(OperationRequest):
    input_path: str = Field(min_length=1)
    start: float = Field(ge=0)
    duration: float = Field(gt=0)

    @property
    def end(self) -> float:
        return self.start + self.duration


class TrimRequest(_RangeRequest):
    """Keep ``[start, start + duration)``."""
    kind: Literal["trim"] = "trim"
    label: ClassVar[str] = "trimmed"


class TrimVideoOnlyRequest(_RangeRequest):
    """Delete ``[start, start + duration)`` from the video, keep the rest."""
    kind: Literal["trim_video_only"] = "trim_video_only"
    label: ClassVar[str] = "cut"


class TrimAudioOnlyRequest(_RangeRequest):
    """Delete ``[start, start + duration)`` from the audio track only."""
    kind: Literal["trim_audio_only"] = "trim_audio_only"
    label: ClassVar[str] = "audio_cut"


class TrimAudioFileRequest(OperationRequest):
    kind: Literal["trim_audio_file"] = "trim_audio_file"
    label: ClassVar[str] = "trimmed"

    input_path: str = Field(min_length=1)
    start: float = Field(ge=0)
    end: float = Field(gt=0)

    @model_validator(mode="after")
    def _check_range(self):
        if self.end <= self.start:
            raise ValueError("end must be greater than start")
        return self


class ReEncodeRequest(OperationRequest):
    kind: Literal["re_encode"] = "re_encode"
    label: ClassVar[str] = "encoded"

    input_path: str = Field(min_length=1)
    quality: Literal["highest", "high", "medium", "low"] = "high"
    resolution: Literal["original", "1080p", "720p", "480p"] = "original"
    fps: Literal["original", "60", "30", "24", "15"] = "original"


class ApplyFilterRequest(OperationRequest):
    """A single adjustment (``brightness``, ``blur``...) or a named look."""
    kind: Literal["apply_filter"] = "apply_filter"
    label: ClassVar[str] = "filtered"

    input_path: str = Field(min_length=1)
    filter: str = Field(min_length=1)
    value: Optional[float] = None


class AddAudioRequest(OperationRequest):
    """Insert an audio file, or generated silence, into a video.

    Leave ``audio_path`` empty and set ``silence_duration`` to insert silence.
    """
    kind: Literal["add_audio"] = "add_audio"
    label: ClassVar[str] = "with_audio"

    video_path: str = Field(min_length=1)
    audio_path: Optional[str] = None
    silence_duration: Optional[float] = Field(default=None, gt=0)
    start: float = Field(default=0.0, ge=0)
    volume: float = Field(default=1.0, ge=0)
    mode: InsertMode = InsertMode.MIX

    @model_validator(mode="after")
    def _check_source(self):
        if not self.audio_path and self.silence_duration is None:
            raise ValueError("either audio_path or silence_duration is required")
        if self.audio_path and self.silence_duration is not None:
            raise ValueError("audio_path and silence_duration are mutually exclusive")
        return self

    @property
    def is_silence(self) -> bool:
        return not self.audio_path

    def input_paths(self) -> list[str]:
        if self.audio_path:
            return [self.video_path, self.audio_path]
        return [self.video_path]


class AddTextRequest(OperationRequest):
    kind: Literal["add_text"] = "add_text"
    label: ClassVar[str] = "text"

    input_path: str = Field(min_length=1)
    text: str = Field(min_length=1)
    font: Optional[str] = None
    font_size: Optional[int] = Field(default=None, gt=0)
    font_color: Optional[str] = None
    bold: bool = False
    italic: bool = False
    x: Optional[str] = None
    y: Optional[str] = None
    start: Optional[float] = Field(default=None, ge=0)
    end: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_window(self):
        if self.start is not None and self.end is not None and self.end <= self.start:
            raise ValueError("end must be greater than start")
        return self


class MergeVideosRequest(OperationRequest):
    """Join clips in order.

    ``transition`` is ``none`` (plain concat), ``fade`` or ``xfade-<name>``
    for any xfade transition (``xfade-wipeleft``, ``xfade-dissolve``...).
    """
    kind: Literal["merge_videos"] = "merge_videos"
    label: ClassVar[str] = "merged"

    clip_paths: list[str] = Field(min_length=2)
    transition: str = "none"
    transition_duration: float = Field(default=1.0, gt=0)
    backfill_audio: bool = True

    def input_paths(self) -> list[str]:
        return list(self.clip_paths)


class MergeAudiosRequest(OperationRequest):
    kind: Literal["merge_audios"] = "merge_audios"
    label: ClassVar[str] = "merged"

    clip_paths: list[str] = Field(min_length=2)

    def input_paths(self) -> list[str]:
        return list(self.clip_paths)

    def default_ext(self) -> str:
        return ".mp3"


class ExtractAudioRequest(OperationRequest):
    kind: Literal["extract_audio"] = "extract_audio"
    label: ClassVar[str] = "audio"

    input_path: str = Field(min_length=1)

    def default_ext(self) -> str:
        return ".mp3"


class AdjustVolumeRequest(OperationRequest):
    kind: Literal["adjust_volume"] = "adjust_volume"
    label: ClassVar[str] = "volume"

    input_path: str = Field(min_length=1)
    level: float = Field(ge=0)


class AdjustSpeedRequest(OperationRequest):
    kind: Literal["adjust_speed"] = "adjust_speed"
    label: ClassVar[str] = "speed"

    input_path: str = Field(min_length=1)
    speed: float = Field(gt=0)


class GenerateSilenceRequest(OperationRequest):
    kind: Literal["generate_silence"] = "generate_silence"
    label: ClassVar[str] = "silence"

    duration: float = Field(gt=0)

    def default_ext(self) -> str:
        return ".mp3"


class GenerateWaveformRequest(OperationRequest):
    kind: Literal["generate_waveform"] = "generate_waveform"
    label: ClassVar[str] = "waveform"

    input_path: str = Field(min_length=1)
    start: Optional[float] = Field(default=None, ge=0)
    end: Optional[float] = Field(default=None, gt=0)

    def default_ext(self) -> str:
        return ".png"


class EnsureAudioRequest(OperationRequest):
    """Give a video a near-silent audio track if it has none."""
    kind: Literal["ensure_audio"] = "ensure_audio"
    label: ClassVar[str] = "with_audio"

    input_path: str = Field(min_length=1)


AnyRequest = Annotated[
    Union[
        TrimRequest,
        TrimVideoOnlyRequest,
        TrimAudioOnlyRequest,
        TrimAudioFileRequest,
        ReEncodeRequest,
        ApplyFilterRequest,
        AddAudioRequest,
        AddTextRequest,
        MergeVideosRequest,
        MergeAudiosRequest,
        ExtractAudioRequest,
        AdjustVolumeRequest,
        AdjustSpeedRequest,
        GenerateSilenceRequest,
        GenerateWaveformRequest,
        EnsureAudioRequest,
    ],
    Field(discriminator="kind"),
]

_adapter = TypeAdapter(AnyRequest)


def parse_request(data: dict[str, Any]) -> OperationRequest:
    """Build the request model named by ``data["kind"]``.

    Raises:
        UnsupportedOperation: If ``kind`` is missing or unknown.
        InvalidParameters: If the fields do not validate.
    """
    if not isinstance(data, dict):
        raise InvalidParameters("A request must be a mapping")
    kind = data.get("kind")
    if kind not in {k.value for k in OperationKind}:
        raise UnsupportedOperation(f"Unknown operation kind: {kind!r}")
    try:
        return _adapter.validate_python(data)
    except ValidationError as exc:
        raise InvalidParameters(f"Invalid {kind} request: {exc}") from exc

