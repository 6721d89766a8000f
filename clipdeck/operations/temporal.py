"""Time-based operations: trims, range deletion and speed changes."""

from ..core.executor.command_builder import Filter, FilterGraph, atempo_filters, fmt_num
from ..errors import InvalidParameters
from .contract import BuildEnv, BuildPlan
from .requests import (
    AdjustSpeedRequest,
    TrimAudioFileRequest,
    TrimAudioOnlyRequest,
    TrimRequest,
    TrimVideoOnlyRequest,
)

# Keep segments shorter than this are treated as empty
_MIN_SEGMENT = 0.001


def _check_start(start: float, total: float, path: str) -> None:
    if start >= total:
        raise InvalidParameters(
            f"Start {fmt_num(start)}s is past the end of {path} ({fmt_num(total)}s)"
        )


def _keep_segments(start: float, end: float, total: float) -> list[tuple[float, float | None]]:
    """``[0, start)`` and ``[end, total)`` minus the empty ones.

    An open end is ``None``.
    """
    segments: list[tuple[float, float | None]] = []
    if start > _MIN_SEGMENT:
        segments.append((0.0, start))
    if total - end > _MIN_SEGMENT:
        segments.append((end, None))
    return segments


def build_trim(request: TrimRequest, env: BuildEnv) -> BuildPlan:
    """Keep ``[start, start + duration)``; video copied, audio re-encoded."""
    probe = env.probe(request.input_path)
    if not (probe.has_video_stream or probe.has_audio_stream):
        raise InvalidParameters(f"{request.input_path} has no audio or video stream")
    _check_start(request.start, probe.duration, request.input_path)

    b = env.builder().describe("trim")
    b.input(request.input_path, ["-ss", fmt_num(request.start)])
    b.output_options("-t", fmt_num(request.duration))

    if probe.has_video_stream:
        b.map("0:v")
    if probe.has_audio_stream:
        b.map("0:a")
    if probe.has_video_stream:
        b.copy_video()
    if probe.has_audio_stream:
        b.output_options(*env.audio_format().to_ffmpeg_args())
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_trim_video_only(request: TrimVideoOnlyRequest, env: BuildEnv) -> BuildPlan:
    """Delete ``[start, end)`` from the picture.

    Video keeps ``[0, start)`` and ``[end, total)``.  Audio is only cut
    down to the new length from the end, it is not spliced the same way.
    """
    probe = env.probe(request.input_path)
    if not probe.has_video_stream:
        raise InvalidParameters(f"{request.input_path} has no video stream")
    total = probe.duration
    _check_start(request.start, total, request.input_path)
    end = min(request.end, total)

    segments = _keep_segments(request.start, end, total)
    if not segments:
        raise InvalidParameters("Deleting the whole clip would leave nothing to keep")

    graph = FilterGraph()
    labels = []
    for i, (seg_start, seg_end) in enumerate(segments, start=1):
        params = {"start": seg_start}
        if seg_end is not None:
            params["end"] = seg_end
        label = f"v{i}" if len(segments) > 1 else "vout"
        graph.chain(["0:v"], [Filter("trim", params), Filter("setpts", args=["PTS-STARTPTS"])], [label])
        labels.append(label)
    if len(labels) > 1:
        graph.chain(labels, [Filter("concat", {"n": len(labels), "v": 1, "a": 0})], ["vout"])

    if probe.has_audio_stream:
        kept = total - (end - request.start)
        graph.chain(
            ["0:a"],
            [Filter("atrim", {"start": 0, "end": kept}), Filter("asetpts", args=["PTS-STARTPTS"])],
            ["aout"],
        )

    b = env.builder().describe("delete video range")
    b.input(request.input_path).complex_filter(graph).map("vout")
    if probe.has_audio_stream:
        b.map("aout")
    b.video_codec("libx264", preset=env.settings.merge.preset, crf=env.settings.merge.crf)
    if probe.has_audio_stream:
        b.output_options(*env.audio_format().to_ffmpeg_args())
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_trim_audio_only(request: TrimAudioOnlyRequest, env: BuildEnv) -> BuildPlan:
    """Delete ``[start, end)`` from the audio, pad it back to the video length."""
    probe = env.probe(request.input_path)
    if not probe.has_audio_stream:
        raise InvalidParameters(f"{request.input_path} has no audio stream to trim")
    total = probe.duration
    _check_start(request.start, total, request.input_path)
    end = min(request.end, total)

    segments = _keep_segments(request.start, end, total)
    if not segments:
        raise InvalidParameters("Deleting the whole audio track would leave nothing to keep")

    graph = FilterGraph()
    pad = Filter("apad", {"whole_dur": total})
    if len(segments) == 1:
        seg_start, seg_end = segments[0]
        params = {"start": seg_start}
        if seg_end is not None:
            params["end"] = seg_end
        graph.chain(
            ["0:a"],
            [Filter("atrim", params), Filter("asetpts", args=["PTS-STARTPTS"]), pad],
            ["aout"],
        )
    else:
        (_, first_end), (second_start, _) = segments
        graph.chain(
            ["0:a"],
            [Filter("atrim", {"start": 0, "end": first_end}), Filter("asetpts", args=["PTS-STARTPTS"])],
            ["a1"],
        )
        graph.chain(
            ["0:a"],
            [Filter("atrim", {"start": second_start}), Filter("asetpts", args=["PTS-STARTPTS"])],
            ["a2"],
        )
        graph.chain(["a1", "a2"], [Filter("concat", {"n": 2, "v": 0, "a": 1}), pad], ["aout"])

    b = env.builder().describe("delete audio range")
    b.input(request.input_path).complex_filter(graph)
    if probe.has_video_stream:
        b.map("0:v")
    b.map("aout")
    if probe.has_video_stream:
        b.copy_video()
    b.output_options(*env.audio_format().to_ffmpeg_args())
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_trim_audio_file(request: TrimAudioFileRequest, env: BuildEnv) -> BuildPlan:
    """Cut a standalone audio file without re-encoding."""
    probe = env.probe(request.input_path)
    _check_start(request.start, probe.duration, request.input_path)
    end = min(request.end, probe.duration)

    b = env.builder().describe("trim audio file")
    b.input(request.input_path)
    b.output_options("-ss", fmt_num(request.start), "-t", fmt_num(end - request.start))
    b.audio_codec("copy")
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_adjust_speed(request: AdjustSpeedRequest, env: BuildEnv) -> BuildPlan:
    """Change playback speed; audio tempo is chained ``atempo`` stages."""
    probe = env.probe(request.input_path)
    b = env.builder().describe(f"speed x{fmt_num(request.speed)}")
    b.input(request.input_path)

    if probe.has_video_stream:
        b.speed(request.speed, audio=probe.has_audio_stream)
        b.video_codec("libx264", preset=env.settings.merge.preset, crf=env.settings.merge.crf)
    elif probe.has_audio_stream:
        b.af(*atempo_filters(request.speed))
    else:
        raise InvalidParameters(f"{request.input_path} has no audio or video stream")

    if probe.has_audio_stream:
        b.output_options(*env.audio_format().to_ffmpeg_args())
    b.output(env.output_path)
    return BuildPlan().add(b.build())
