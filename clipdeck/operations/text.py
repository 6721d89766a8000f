"""Text overlays with ``drawtext``.

When the overlay covers only the middle of a clip, the parts before and
after are stream-copied and only the window is re-encoded; the three
segments are then joined with the concat demuxer.
"""

from pathlib import Path

from ..core.executor.command_builder import Filter, fmt_num
from ..core.sanitize import concat_list_entry, escape_filter_value, sanitize_text_param
from ..errors import InvalidParameters
from .contract import BuildEnv, BuildPlan
from .requests import AddTextRequest

# Windows ending closer than this to the end of the clip run to the end
END_TOLERANCE = 0.1


def font_name(font: str, bold: bool, italic: bool) -> str:
    """fontconfig name, ``Sans`` -> ``Sans Bold Italic``."""
    style = " ".join(s for s, on in (("Bold", bold), ("Italic", italic)) if on)
    return f"{font} {style}" if style else font


def drawtext_filter(request: AddTextRequest, env: BuildEnv, window: tuple[float, float] | None) -> Filter:
    defaults = env.settings.text
    font = font_name(request.font or defaults.font, request.bold, request.italic)
    params: dict = {
        "text": sanitize_text_param(request.text),
        "font": escape_filter_value(font),
        "fontsize": request.font_size or defaults.font_size,
        "fontcolor": escape_filter_value(request.font_color or defaults.font_color),
        "x": escape_filter_value(request.x) if request.x else "(w-text_w)/2",
        "y": escape_filter_value(request.y) if request.y else "(h-text_h)/2",
    }
    if window is not None:
        start, end = window
        params["enable"] = f"'between(t,{fmt_num(start)},{fmt_num(end)})'"
    return Filter("drawtext", params)


def build_add_text(request: AddTextRequest, env: BuildEnv) -> BuildPlan:
    probe = env.probe(request.input_path)
    if not probe.has_video_stream:
        raise InvalidParameters(f"{request.input_path} has no video stream")

    total = probe.duration
    start = request.start or 0.0
    end = total if request.end is None else min(request.end, total)
    if start >= total:
        raise InvalidParameters(
            f"Text starts at {fmt_num(start)}s, after the end of the clip ({fmt_num(total)}s)"
        )
    if end <= start:
        raise InvalidParameters("Text window is empty")

    merge = env.settings.merge
    if start > 0 and end < total - END_TOLERANCE:
        return _segmented(request, env, start, end, probe.has_audio_stream)

    windowed = start > 0 or end < total
    b = env.builder().describe("add text")
    b.input(request.input_path)
    b.vf(drawtext_filter(request, env, (start, end) if windowed else None))
    b.video_codec("libx264", crf=merge.crf, preset=merge.preset)
    if probe.has_audio_stream:
        b.audio_codec("copy")
    b.output(env.output_path)
    return BuildPlan().add(b.build())


def _segmented(
    request: AddTextRequest,
    env: BuildEnv,
    start: float,
    end: float,
    has_audio: bool,
) -> BuildPlan:
    """Copy / encode / copy, then concatenate without re-encoding."""
    merge = env.settings.merge
    ext = Path(request.input_path).suffix or ".mp4"
    plan = BuildPlan()
    head = plan.temp(env.work_file(f"segment_1{ext}"))
    body = plan.temp(env.work_file(f"segment_2{ext}"))
    tail = plan.temp(env.work_file(f"segment_3{ext}"))

    plan.add(
        env.builder().describe("text: copy head")
        .input(request.input_path)
        .output_options("-t", fmt_num(start), "-c", "copy")
        .output(head).build()
    )

    b = env.builder().describe("text: encode window")
    b.input(request.input_path).output_options("-ss", fmt_num(start), "-t", fmt_num(end - start))
    b.vf(drawtext_filter(request, env, None))
    b.video_codec("libx264", crf=merge.crf, preset=merge.preset)
    if has_audio:
        b.audio_codec("copy")
    plan.add(b.output(body).build())

    plan.add(
        env.builder().describe("text: copy tail")
        .input(request.input_path)
        .output_options("-ss", fmt_num(end), "-c", "copy")
        .output(tail).build()
    )

    listing = plan.stage(
        env.work_file("segments.txt"),
        "".join(concat_list_entry(p) + "\n" for p in (head, body, tail)),
    )
    plan.add(
        env.builder().describe("text: join segments")
        .input(listing, ["-f", "concat", "-safe", "0"])
        .output_options("-c", "copy")
        .output(env.output_path).build()
    )
    return plan
