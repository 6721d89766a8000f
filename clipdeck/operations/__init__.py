"""Operation builders, dispatched by request kind.

``build()`` turns a request plus its probe results into a
:class:`~clipdeck.operations.contract.BuildPlan`.  It never spawns a
process or touches the filesystem.
"""

from typing import Callable, Mapping

from ..config import Settings
from ..core.video.analyzer import MediaProbeResult
from ..errors import UnsupportedOperation
from .audio import (
    build_add_audio,
    build_adjust_volume,
    build_ensure_audio,
    build_extract_audio,
    build_generate_silence,
    build_generate_waveform,
    build_merge_audios,
    waveform_data_url,
)
from .contract import BuildEnv, BuildPlan
from .encoding import build_apply_filter, build_re_encode
from .multi_input import build_merge_videos
from .requests import InsertMode, OperationKind, OperationRequest, parse_request
from .temporal import (
    build_adjust_speed,
    build_trim,
    build_trim_audio_file,
    build_trim_audio_only,
    build_trim_video_only,
)
from .text import build_add_text

Builder = Callable[[OperationRequest, BuildEnv], BuildPlan]

BUILDERS: dict[OperationKind, Builder] = {
    OperationKind.TRIM: build_trim,
    OperationKind.TRIM_VIDEO_ONLY: build_trim_video_only,
    OperationKind.TRIM_AUDIO_ONLY: build_trim_audio_only,
    OperationKind.TRIM_AUDIO_FILE: build_trim_audio_file,
    OperationKind.RE_ENCODE: build_re_encode,
    OperationKind.APPLY_FILTER: build_apply_filter,
    OperationKind.ADD_AUDIO: build_add_audio,
    OperationKind.ADD_TEXT: build_add_text,
    OperationKind.MERGE_VIDEOS: build_merge_videos,
    OperationKind.MERGE_AUDIOS: build_merge_audios,
    OperationKind.EXTRACT_AUDIO: build_extract_audio,
    OperationKind.ADJUST_VOLUME: build_adjust_volume,
    OperationKind.ADJUST_SPEED: build_adjust_speed,
    OperationKind.GENERATE_SILENCE: build_generate_silence,
    OperationKind.GENERATE_WAVEFORM: build_generate_waveform,
    OperationKind.ENSURE_AUDIO: build_ensure_audio,
}


def build(
    request: OperationRequest,
    probes: Mapping[str, MediaProbeResult],
    output_path: str,
    work_dir: str,
    settings: Settings | None = None,
    ffmpeg: str | None = None,
) -> BuildPlan:
    """Build the FFmpeg passes for ``request``.

    Args:
        request: The edit to perform.
        probes: Probe result for every path in ``request.input_paths()``.
        output_path: Where the last pass writes.
        work_dir: Directory for intermediate files.
        settings: Encoding defaults; library defaults when omitted.
        ffmpeg: FFmpeg binary placed in ``argv[0]``.

    Raises:
        UnsupportedOperation: Unknown request kind.
        InvalidParameters: The request cannot be built for these inputs.
    """
    kind = getattr(request, "kind", None)
    try:
        builder = BUILDERS[OperationKind(kind)]
    except (KeyError, ValueError):
        raise UnsupportedOperation(f"Unsupported operation: {kind!r}") from None

    settings = settings or Settings()
    env = BuildEnv(
        probes=probes,
        output_path=str(output_path),
        work_dir=str(work_dir),
        settings=settings,
        ffmpeg=ffmpeg or "ffmpeg",
    )
    return builder(request, env)


__all__ = [
    "BUILDERS",
    "BuildEnv",
    "BuildPlan",
    "InsertMode",
    "OperationKind",
    "OperationRequest",
    "build",
    "parse_request",
    "waveform_data_url",
]
