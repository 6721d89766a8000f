"""Shared fixtures for clipdeck tests.

Nothing here needs a real FFmpeg: builders are fed hand-made probe results
and the orchestrator runs against a scripted fake runner.
"""

import json
import os
from pathlib import Path

import pytest

from clipdeck.config import Settings
from clipdeck.core.executor.command_builder import CommandSpec, Executable
from clipdeck.core.executor.process_manager import ExitOutcome
from clipdeck.core.video.analyzer import MediaProbeResult
from clipdeck.operations import build


def make_probe(path, duration=10.0, audio=True, video=True, width=1280, height=720):
    return MediaProbeResult(
        path=str(path),
        duration=duration,
        has_audio_stream=audio,
        has_video_stream=video,
        width=width if video else None,
        height=height if video else None,
        frame_rate=30.0 if video else None,
        audio_sample_rate=48000 if audio else None,
    )


def probe_json(duration=10.0, audio=True, video=True) -> str:
    streams = []
    if video:
        streams.append({"codec_type": "video", "width": 1280, "height": 720, "r_frame_rate": "30/1"})
    if audio:
        streams.append({"codec_type": "audio", "sample_rate": "48000"})
    return json.dumps({"format": {"duration": str(duration)}, "streams": streams})


@pytest.fixture
def settings(tmp_path):
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return Settings(scratch_dir=str(scratch), ffmpeg_path="ffmpeg", ffprobe_path="ffprobe")


@pytest.fixture
def build_plan(tmp_path, settings):
    """``build_plan(request, *probes, output="out.mp4")`` -> BuildPlan."""
    work_dir = tmp_path / "work"
    work_dir.mkdir()

    def _build(request, *probes, output="out.mp4"):
        return build(
            request,
            {p.path: p for p in probes},
            str(tmp_path / output),
            str(work_dir),
            settings=settings,
            ffmpeg="ffmpeg",
        )

    return _build


class FakeRunner:
    """Stands in for ProcessRunner.

    ffprobe calls answer from ``media`` (path -> probe kwargs); ffmpeg calls
    write their output file and exit 0 unless ``fail_on`` names the pass.
    """

    def __init__(self, media=None, fail_on=None, progress=("frame=1 time=00:00:01",)):
        self.media = media or {}
        self.fail_on = fail_on
        self.progress = progress
        self.calls: list[CommandSpec] = []

    async def run(self, spec: CommandSpec, on_progress=None) -> ExitOutcome:
        self.calls.append(spec)
        if spec.executable == Executable.FFPROBE:
            path = spec.argv[-1]
            if path not in self.media:
                return ExitOutcome(1, f"{path}: No such file or directory")
            return ExitOutcome(0, "", probe_json(**self.media[path]))

        for line in self.progress:
            if on_progress:
                on_progress(line)
        ffmpeg_calls = [c for c in self.calls if c.executable == Executable.FFMPEG]
        if self.fail_on is not None and len(ffmpeg_calls) == self.fail_on:
            Path(spec.output_path).write_bytes(b"partial")
            return ExitOutcome(1, "Error while opening encoder for output stream #0:0")
        Path(spec.output_path).write_bytes(b"transcoded")
        return ExitOutcome(0, "")

    @property
    def ffmpeg_calls(self) -> list[CommandSpec]:
        return [c for c in self.calls if c.executable == Executable.FFMPEG]


@pytest.fixture
def media_dir(tmp_path):
    d = tmp_path / "media"
    d.mkdir()
    return d


def touch(path, data=b"media") -> str:
    Path(path).write_bytes(data)
    return str(path)


def leftover_temp_files(directory) -> list[str]:
    return [name for name in os.listdir(directory) if "_temp_" in name]


_BLANKS = " \n\t\r"


def filter_token(buf: str, term: str) -> tuple[str, str]:
    """Read one token the way FFmpeg's ``av_get_token`` does.

    ``\\x`` yields ``x``, ``'...'`` is taken literally and the token stops at
    the first unescaped character in ``term``.  Returns the token and the
    unread rest of ``buf``.
    """
    i = len(buf) - len(buf.lstrip(_BLANKS))
    out, end = [], 0
    while i < len(buf) and buf[i] not in term:
        c = buf[i]
        i += 1
        if c == "\\" and i < len(buf):
            out.append(buf[i])
            i += 1
            end = len(out)
        elif c == "'":
            while i < len(buf) and buf[i] != "'":
                out.append(buf[i])
                i += 1
            if i < len(buf):
                i += 1
                end = len(out)
        else:
            out.append(c)
    token = "".join(out)
    return token[:end] + token[end:].rstrip(_BLANKS), buf[i:]


def filter_options(vf: str) -> tuple[str, dict[str, str], str]:
    """Split a one-filter ``-vf`` string into name, options and leftover text.

    Leftover text is whatever the graph parser would treat as a next filter.
    """
    name, rest = filter_token(vf, "=,;[")
    if not rest.startswith("="):
        return name, {}, rest
    args, rest = filter_token(rest[1:], "[],;")
    options = {}
    while args:
        key, _, args = args.partition("=")
        options[key], args = filter_token(args, ":")
        args = args[1:]
    return name, options, rest


def drawtext_literal(text: str) -> str:
    """What drawtext renders for an already unescaped ``text`` option."""
    out, i = [], 0
    while i < len(text):
        if text[i] == "\\" and i + 1 < len(text):
            i += 1
        elif text[i] == "%":
            raise ValueError(f"unescaped expansion in {text!r}")
        out.append(text[i])
        i += 1
    return "".join(out)
