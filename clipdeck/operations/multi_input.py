"""Video merging: concat and crossfade transitions.

Clips of different sizes, frame rates and sample rates cannot meet in one
``concat`` or ``xfade``, so every clip is first normalised to the merge
canvas (scale + pad, ``setsar=1``, fixed fps, 48 kHz stereo audio).
Clips without audio get a near-silent track in a separate pass first.
"""

import logging

from ..core.executor.command_builder import Filter, FilterGraph, fmt_num
from ..errors import InvalidParameters
from .audio import backfill_command
from .contract import BuildEnv, BuildPlan
from .requests import MergeVideosRequest

logger = logging.getLogger("clipdeck")

PLAIN_TRANSITIONS = {"none", "concat"}


def transition_effect(transition: str) -> str | None:
    """xfade transition name for a merge transition, None for a plain concat.

    ``fade`` -> ``fade``, ``xfade-wipeleft`` -> ``wipeleft``.
    """
    name = (transition or "none").strip().lower()
    if name in PLAIN_TRANSITIONS:
        return None
    if name.startswith("xfade-"):
        effect = name[len("xfade-"):]
        if not effect.replace("_", "").isalnum():
            raise InvalidParameters(f"Invalid transition: {transition}")
        return effect
    if name == "fade":
        return "fade"
    raise InvalidParameters(f"Unknown transition: {transition}")


def xfade_offsets(durations: list[float], transition_duration: float) -> list[float]:
    """Offset of each transition in the merged timeline.

    The transition into clip *i* (1-based) starts at the sum of the previous
    clip durations minus ``i`` overlaps, clamped to zero.
    """
    offsets = []
    elapsed = 0.0
    for i, duration in enumerate(durations[:-1], start=1):
        elapsed += duration
        offsets.append(max(0.0, elapsed - i * transition_duration))
    return offsets


def _normalise(graph: FilterGraph, index: int, env: BuildEnv, with_audio: bool) -> None:
    canvas = env.settings.merge
    audio = env.settings.audio
    w, h = canvas.width, canvas.height
    graph.chain(
        [f"{index}:v"],
        [
            Filter("scale", {"w": w, "h": h, "force_original_aspect_ratio": "decrease"}),
            Filter("pad", args=[w, h, "(ow-iw)/2", "(oh-ih)/2"]),
            Filter("setsar", args=[1]),
            Filter("fps", args=[canvas.fps]),
            Filter("format", args=["yuv420p"]),
        ],
        [f"v{index}"],
    )
    if with_audio:
        graph.chain(
            [f"{index}:a"],
            [
                Filter("aresample", args=[audio.sample_rate]),
                Filter("aformat", {"sample_rates": audio.sample_rate, "channel_layouts": "stereo"}),
            ],
            [f"a{index}"],
        )


def merge_graph(
    durations: list[float],
    effect: str | None,
    transition_duration: float,
    env: BuildEnv,
    with_audio: bool,
) -> FilterGraph:
    """Graph ending in ``[vout]`` (and ``[aout]`` when ``with_audio``)."""
    count = len(durations)
    graph = FilterGraph()
    for i in range(count):
        _normalise(graph, i, env, with_audio)

    if effect is None:
        labels = []
        for i in range(count):
            labels.append(f"v{i}")
            if with_audio:
                labels.append(f"a{i}")
        outputs = ["vout", "aout"] if with_audio else ["vout"]
        graph.chain(
            labels,
            [Filter("concat", {"n": count, "v": 1, "a": 1 if with_audio else 0})],
            outputs,
        )
        return graph

    offsets = xfade_offsets(durations, transition_duration)
    current = "v0"
    for i in range(1, count):
        out = "vout" if i == count - 1 else f"x{i}"
        graph.chain(
            [current, f"v{i}"],
            [Filter("xfade", {
                "transition": effect,
                "duration": transition_duration,
                "offset": offsets[i - 1],
            })],
            [out],
        )
        current = out

    if with_audio:
        current = "a0"
        for i in range(1, count):
            out = "aout" if i == count - 1 else f"ax{i}"
            graph.chain(
                [current, f"a{i}"],
                [Filter("acrossfade", {"d": transition_duration})],
                [out],
            )
            current = out
    return graph


def build_merge_videos(request: MergeVideosRequest, env: BuildEnv) -> BuildPlan:
    """Merge clips in order, backfilling audio-less clips first."""
    effect = transition_effect(request.transition)
    probes = [env.probe(path) for path in request.clip_paths]
    for probe in probes:
        if not probe.has_video_stream:
            raise InvalidParameters(f"{probe.path} has no video stream")

    durations = [p.duration for p in probes]
    if effect is not None:
        shortest = min(durations)
        if request.transition_duration >= shortest:
            raise InvalidParameters(
                f"Transition of {fmt_num(request.transition_duration)}s is longer than "
                f"the shortest clip ({fmt_num(shortest)}s)"
            )

    plan = BuildPlan()
    any_audio = any(p.has_audio_stream for p in probes)
    with_audio = request.backfill_audio or all(p.has_audio_stream for p in probes)
    if not with_audio and any_audio:
        logger.info("Merging without audio: some clips have none and backfill is off")

    merge_inputs = []
    for i, (path, probe) in enumerate(zip(request.clip_paths, probes)):
        if with_audio and not probe.has_audio_stream:
            # AAC plus the copied video stream; MP4 takes both whatever the source container
            filled = plan.temp(env.work_file(f"backfill_{i}.mp4"))
            plan.add(backfill_command(env.ffmpeg, path, probe.duration, filled, env.settings))
            merge_inputs.append(filled)
        else:
            merge_inputs.append(path)

    graph = merge_graph(durations, effect, request.transition_duration, env, with_audio)

    canvas = env.settings.merge
    audio = env.settings.audio
    b = env.builder().describe(f"merge {len(merge_inputs)} clips")
    for path in merge_inputs:
        b.input(path)
    b.complex_filter(graph).map("vout")
    if with_audio:
        b.map("aout")
    b.video_codec("libx264", preset=canvas.preset, crf=canvas.crf)
    if with_audio:
        b.audio_codec(
            audio.codec,
            bitrate=audio.bitrate,
            sample_rate=audio.sample_rate,
            channels=audio.channels,
        )
    else:
        b.no_audio()
    b.output_options("-movflags", "+faststart")
    b.output(env.output_path)
    return plan.add(b.build())
