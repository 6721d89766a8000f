"""Export re-encoding and visual filters."""

from ..core.executor.command_builder import atempo_filters
from ..core.video.formats import FPS_PRESETS, QUALITY_PRESETS, RESOLUTION_PRESETS
from ..errors import InvalidParameters
from .contract import BuildEnv, BuildPlan
from .presets import render_filters
from .requests import ApplyFilterRequest, ReEncodeRequest


def build_re_encode(request: ReEncodeRequest, env: BuildEnv) -> BuildPlan:
    """Re-encode to H.264 using the export dialog's presets."""
    probe = env.probe(request.input_path)
    if not probe.has_video_stream:
        raise InvalidParameters(f"{request.input_path} has no video stream")

    quality = QUALITY_PRESETS[request.quality]
    resolution = RESOLUTION_PRESETS[request.resolution]
    fps = FPS_PRESETS[request.fps]

    b = env.builder().describe(f"re-encode {request.quality}/{request.resolution}")
    b.input(request.input_path)
    if resolution.width and resolution.height:
        b.scale(resolution.width, resolution.height, fit=True)
    if fps:
        b.fps(fps)

    b.output_options(*quality.to_ffmpeg_args())
    if fps:
        b.output_options("-r", str(fps))

    if probe.has_audio_stream:
        b.output_options(*env.audio_format().to_ffmpeg_args())
    else:
        b.no_audio()

    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_apply_filter(request: ApplyFilterRequest, env: BuildEnv) -> BuildPlan:
    """Apply one adjustment or look; audio is copied.

    ``speed`` also retimes the audio, since a copied track would no longer
    line up with the picture.
    """
    probe = env.probe(request.input_path)
    if not probe.has_video_stream:
        raise InvalidParameters(f"{request.input_path} has no video stream")

    filters = render_filters(request.filter, request.value)

    b = env.builder().describe(f"filter {request.filter}")
    b.input(request.input_path).vf(*filters)
    merge = env.settings.merge
    b.video_codec("libx264", crf=merge.crf, preset=merge.preset, pixel_format="yuv420p")

    if request.filter.lower() == "speed" and probe.has_audio_stream:
        factor = 1.0 if request.value is None else request.value
        b.af(*atempo_filters(factor))
        b.output_options(*env.audio_format().to_ffmpeg_args())
    elif probe.has_audio_stream:
        b.audio_codec("copy")

    b.output(env.output_path)
    return BuildPlan().add(b.build())
