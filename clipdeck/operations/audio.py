"""Audio operations.

Insertion into a video's soundtrack (``mix`` / ``overwrite`` / ``push``),
volume, extraction, concatenation, generated silence, waveform images and
the near-silent backfill track used before merges.
"""

import base64
from pathlib import Path

from ..config import Settings
from ..core.executor.command_builder import CommandBuilder, CommandSpec, Filter, FilterGraph, fmt_num
from ..core.video.analyzer import MediaProbeResult
from ..errors import InvalidParameters
from .contract import BuildEnv, BuildPlan
from .requests import (
    AddAudioRequest,
    AdjustVolumeRequest,
    EnsureAudioRequest,
    ExtractAudioRequest,
    GenerateSilenceRequest,
    GenerateWaveformRequest,
    InsertMode,
    MergeAudiosRequest,
)

SILENCE_SAMPLE_RATE = 44100

# Backfill noise stays this far below full scale: inaudible, yet still
# visible on a logarithmic waveform.
BACKFILL_AMPLITUDE = 0.001


def silence_source(duration: float) -> str:
    """``anullsrc`` lavfi source of ``duration`` seconds of stereo silence."""
    return f"anullsrc=r={SILENCE_SAMPLE_RATE}:cl=stereo:d={fmt_num(duration)}"


def backfill_source(duration: float, sample_rate: int = 48000) -> str:
    """``aevalsrc`` lavfi source of faint stereo noise."""
    amp = fmt_num(BACKFILL_AMPLITUDE)
    return (
        f"aevalsrc=random(0)*{amp}|random(1)*{amp}"
        f":d={fmt_num(duration)}:c=stereo:s={sample_rate}"
    )


def backfill_command(
    ffmpeg: str,
    video_path: str,
    duration: float,
    output_path: str,
    settings: Settings,
) -> CommandSpec:
    """Mux a near-silent track under ``video_path``; the picture is copied."""
    audio = settings.audio
    return (
        CommandBuilder(ffmpeg)
        .describe("backfill silent track")
        .lavfi(backfill_source(duration, audio.sample_rate))
        .input(video_path)
        .map("1:v", "0:a")
        .copy_video()
        .audio_codec(
            audio.codec,
            bitrate=audio.bitrate,
            sample_rate=audio.sample_rate,
            channels=audio.channels,
        )
        .output_options("-movflags", "+faststart")
        .output(output_path)
        .build()
    )


def _aselect(expr: str, label_in: str, label_out: str, graph: FilterGraph) -> None:
    graph.chain(
        [label_in],
        [Filter("aselect", args=[f"'{expr}'"]), Filter("asetpts", args=["N/SR/TB"])],
        [label_out],
    )


def _insert_graph(
    request: AddAudioRequest,
    video: MediaProbeResult,
    inserted_duration: float,
) -> FilterGraph:
    """Filter graph producing ``[aout]`` from the video (0) and new audio (1)."""
    start = request.start
    delay_ms = int(round(start * 1000))
    delay = Filter("adelay", args=[f"{delay_ms}|{delay_ms}"])
    pad = Filter("apad", {"whole_dur": video.duration})
    volume = Filter("volume", args=[request.volume])
    graph = FilterGraph()

    if not video.has_audio_stream:
        graph.chain(["1:a"], [volume, delay, pad], ["aout"])
        return graph

    if request.mode == InsertMode.MIX:
        if request.is_silence:
            mix = Filter("amix", {"inputs": 2, "duration": "first", "dropout_transition": 0})
            graph.chain(["1:a"], [volume, delay], ["a1"])
            graph.chain(["0:a", "a1"], [mix, Filter("volume", args=[1]), pad], ["aout"])
        else:
            mix = Filter("amix", {"inputs": 2, "duration": "first", "dropout_transition": 2})
            graph.chain(["1:a"], [volume, delay], ["a1"])
            graph.chain(["0:a", "a1"], [mix, pad], ["aout"])
        return graph

    # overwrite and push: cut the existing track at ``start`` and splice in
    resume = start + inserted_duration if request.mode == InsertMode.OVERWRITE else start
    _aselect(f"lt(t,{fmt_num(start)})", "0:a", "before", graph)
    graph.chain(["1:a"], [volume], ["new"])
    _aselect(f"gte(t,{fmt_num(resume)})", "0:a", "after", graph)
    splice = [Filter("concat", {"n": 3, "v": 0, "a": 1})]
    if request.mode == InsertMode.OVERWRITE:
        splice.append(pad)
    graph.chain(["before", "new", "after"], splice, ["aout"])
    return graph


def build_add_audio(request: AddAudioRequest, env: BuildEnv) -> BuildPlan:
    """Insert an audio file or silence at ``start`` seconds into the video."""
    video = env.probe(request.video_path)
    if not video.has_video_stream:
        raise InvalidParameters(f"{request.video_path} has no video stream")
    if request.start >= video.duration:
        raise InvalidParameters(
            f"Insert point {fmt_num(request.start)}s is past the end of the video "
            f"({fmt_num(video.duration)}s)"
        )

    if request.is_silence:
        inserted_duration = request.silence_duration
    else:
        audio = env.probe(request.audio_path)
        if not audio.has_audio_stream:
            raise InvalidParameters(f"{request.audio_path} has no audio stream")
        inserted_duration = audio.duration

    b = env.builder().describe(f"add audio ({request.mode.value})")
    b.input(request.video_path)
    if request.is_silence:
        b.lavfi(silence_source(inserted_duration))
    else:
        b.input(request.audio_path)

    b.complex_filter(_insert_graph(request, video, inserted_duration))
    b.map("0:v", "aout").copy_video()
    b.output_options(*env.audio_format().to_ffmpeg_args())
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_adjust_volume(request: AdjustVolumeRequest, env: BuildEnv) -> BuildPlan:
    probe = env.probe(request.input_path)
    if not probe.has_audio_stream:
        raise InvalidParameters(f"{request.input_path} has no audio stream")

    b = env.builder().describe(f"volume x{fmt_num(request.level)}")
    b.input(request.input_path).af(Filter("volume", args=[request.level]))
    if probe.has_video_stream:
        b.copy_video()
    fmt = env.audio_format()
    b.audio_codec(fmt.codec, bitrate=fmt.bitrate)
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_extract_audio(request: ExtractAudioRequest, env: BuildEnv) -> BuildPlan:
    probe = env.probe(request.input_path)
    if not probe.has_audio_stream:
        raise InvalidParameters(f"{request.input_path} has no audio stream to extract")

    fmt = env.audio_format()
    b = env.builder().describe("extract audio")
    b.input(request.input_path).no_video()
    b.audio_codec(fmt.codec, bitrate=fmt.bitrate)
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_merge_audios(request: MergeAudiosRequest, env: BuildEnv) -> BuildPlan:
    """Concatenate audio files back to back into one MP3."""
    labels = []
    b = env.builder().describe(f"merge {len(request.clip_paths)} audio files")
    for i, path in enumerate(request.clip_paths):
        if not env.probe(path).has_audio_stream:
            raise InvalidParameters(f"{path} has no audio stream")
        b.input(path)
        labels.append(f"{i}:a")

    graph = FilterGraph()
    graph.chain(labels, [Filter("concat", {"n": len(labels), "v": 0, "a": 1})], ["outa"])
    b.complex_filter(graph).map("outa")
    b.audio_codec("libmp3lame", quality=2)
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_generate_silence(request: GenerateSilenceRequest, env: BuildEnv) -> BuildPlan:
    b = env.builder().describe("generate silence")
    b.lavfi(silence_source(request.duration))
    b.audio_codec("libmp3lame", bitrate=env.settings.audio.bitrate)
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_generate_waveform(request: GenerateWaveformRequest, env: BuildEnv) -> BuildPlan:
    """Render the audio track to a single PNG with ``showwavespic``."""
    probe = env.probe(request.input_path)
    if not probe.has_audio_stream:
        raise InvalidParameters(f"{request.input_path} has no audio stream")

    style = env.settings.waveform
    filters = []
    if request.start is not None or request.end is not None:
        params = {"start": request.start or 0}
        if request.end is not None:
            if request.end <= params["start"]:
                raise InvalidParameters("Waveform end must be greater than start")
            params["end"] = request.end
        filters += [Filter("atrim", params), Filter("asetpts", args=["PTS-STARTPTS"])]
    filters.append(Filter("showwavespic", {
        "s": f"{style.width}x{style.height}",
        "colors": style.color,
        "draw": "scale",
        "scale": style.scale,
        "split_channels": 1,
    }))

    graph = FilterGraph()
    graph.chain(["0:a"], filters, ["wave"])

    b = env.builder().describe("waveform")
    b.input(request.input_path).complex_filter(graph).map("wave")
    b.output_options("-frames:v", "1")
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def build_ensure_audio(request: EnsureAudioRequest, env: BuildEnv) -> BuildPlan:
    """Backfill a near-silent track; files that already have audio are remuxed."""
    probe = env.probe(request.input_path)
    if not probe.has_video_stream:
        raise InvalidParameters(f"{request.input_path} has no video stream")

    if probe.has_audio_stream:
        b = env.builder().describe("remux")
        b.input(request.input_path).output_options("-c", "copy").output(env.output_path)
        return BuildPlan().add(b.build())

    return BuildPlan().add(backfill_command(
        env.ffmpeg, request.input_path, probe.duration, env.output_path, env.settings,
    ))


def waveform_data_url(path: str | Path) -> str:
    """Read a rendered waveform PNG as a ``data:`` URL for embedding in a UI."""
    data = Path(path).read_bytes()
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")
