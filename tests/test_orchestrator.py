"""Tests for the orchestrator, run against a scripted fake runner."""

import asyncio
import logging
import os
from pathlib import Path

import pytest

from clipdeck.context import AppContext
from clipdeck.core.orchestrator import OperationResult, Orchestrator, run_all
from clipdeck.errors import FinalizeError, InvalidParameters, ProbeError, SubprocessFailure
from clipdeck.operations.requests import (
    AddTextRequest,
    MergeVideosRequest,
    TrimRequest,
)

from conftest import FakeRunner, leftover_temp_files, touch


class RecordingListener:
    def __init__(self):
        self.states: list[tuple[str, str]] = []
        self.progress: list[tuple[str, str]] = []

    def on_progress(self, operation_id, text):
        self.progress.append((operation_id, text))

    def on_state(self, operation_id, state):
        self.states.append((operation_id, state))


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def make_orchestrator(settings, listener):
    def _make(runner):
        context = AppContext(settings=settings)
        context.subscribe(listener)
        return Orchestrator(context, runner=runner)

    return _make


def scratch_contents(settings):
    return sorted(os.listdir(settings.scratch_dir))


class TestRun:

    @pytest.mark.asyncio
    async def test_trim_to_scratch(self, make_orchestrator, media_dir, settings, listener):
        clip = touch(media_dir / "clip.mp4")
        runner = FakeRunner(media={clip: {}})
        orchestrator = make_orchestrator(runner)

        result = await orchestrator.run(TrimRequest(input_path=clip, start=1, duration=2), "op-1")

        assert isinstance(result, OperationResult)
        assert result.kind == "trim"
        assert result.passes == 1
        assert result.probe.duration == 10.0
        assert Path(result.output_path).parent == Path(settings.scratch_dir)
        assert Path(result.output_path).name.startswith("clip_trimmed_")
        assert Path(result.output_path).read_bytes() == b"transcoded"
        assert scratch_contents(settings) == [Path(result.output_path).name]

        states = [s for op, s in listener.states if op == "op-1"]
        assert states == [
            "planning", "probing", "building", "running[1/1]", "finalizing", "done",
        ]

    @pytest.mark.asyncio
    async def test_same_file_is_replaced_atomically(self, make_orchestrator, media_dir):
        clip = touch(media_dir / "clip.mp4")
        runner = FakeRunner(media={clip: {}})

        result = await make_orchestrator(runner).run(
            TrimRequest(input_path=clip, start=0, duration=2, output_path=clip)
        )

        assert result.output_path == clip
        assert Path(clip).read_bytes() == b"transcoded"
        assert leftover_temp_files(media_dir) == []
        assert "_temp_" in runner.ffmpeg_calls[0].output_path

    @pytest.mark.asyncio
    async def test_each_input_probed_once(self, make_orchestrator, media_dir):
        a = touch(media_dir / "a.mp4")
        runner = FakeRunner(media={a: {}})

        await make_orchestrator(runner).run(MergeVideosRequest(clip_paths=[a, a]))

        probes = [c for c in runner.calls if c.description == "probe"]
        assert len(probes) == 1

    @pytest.mark.asyncio
    async def test_merge_backfill_cleans_up(self, make_orchestrator, media_dir, settings):
        silent = touch(media_dir / "silent.mp4")
        loud = touch(media_dir / "loud.mp4")
        runner = FakeRunner(media={silent: {"duration": 5.0, "audio": False}, loud: {}})
        out = str(media_dir / "merged.mp4")

        result = await make_orchestrator(runner).run(
            MergeVideosRequest(clip_paths=[silent, loud], output_path=out)
        )

        backfill, merge = runner.ffmpeg_calls
        assert backfill.description == "backfill silent track"
        assert merge.option("-i")[0] == backfill.output_path
        assert not os.path.exists(backfill.output_path)
        assert result.output_path == out
        assert Path(out).read_bytes() == b"transcoded"
        assert scratch_contents(settings) == []

    @pytest.mark.asyncio
    async def test_staged_concat_list_written_and_removed(self, make_orchestrator, media_dir, settings):
        clip = touch(media_dir / "clip.mp4")
        runner = FakeRunner(media={clip: {}})

        await make_orchestrator(runner).run(
            AddTextRequest(input_path=clip, text="Hi", start=2, end=5, output_path=str(media_dir / "t.mp4"))
        )

        assert len(runner.ffmpeg_calls) == 4
        join = runner.ffmpeg_calls[-1]
        assert join.option("-i")[0].endswith("segments.txt")
        assert not os.path.exists(join.option("-i")[0])
        assert scratch_contents(settings) == []

    @pytest.mark.asyncio
    async def test_progress_is_forwarded(self, make_orchestrator, media_dir, listener):
        clip = touch(media_dir / "clip.mp4")
        runner = FakeRunner(media={clip: {}}, progress=("frame=10 time=00:00:00.40", "frame=20"))

        await make_orchestrator(runner).run(TrimRequest(input_path=clip, start=0, duration=1), "op-p")

        assert listener.progress == [("op-p", "frame=10 time=00:00:00.40"), ("op-p", "frame=20")]


class TestFailures:

    @pytest.mark.asyncio
    async def test_missing_input_spawns_nothing(self, make_orchestrator, media_dir):
        runner = FakeRunner()
        with pytest.raises(InvalidParameters, match="not found"):
            await make_orchestrator(runner).run(
                TrimRequest(input_path=str(media_dir / "nope.mp4"), start=0, duration=1)
            )
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_invalid_parameters_spawn_no_ffmpeg(self, make_orchestrator, media_dir):
        clip = touch(media_dir / "clip.mp4")
        runner = FakeRunner(media={clip: {"duration": 3.0}})
        with pytest.raises(InvalidParameters):
            await make_orchestrator(runner).run(TrimRequest(input_path=clip, start=5, duration=1))
        assert runner.ffmpeg_calls == []

    @pytest.mark.asyncio
    async def test_probe_failure(self, make_orchestrator, media_dir, listener):
        clip = touch(media_dir / "clip.mp4")
        with pytest.raises(ProbeError) as excinfo:
            await make_orchestrator(FakeRunner()).run(TrimRequest(input_path=clip, start=0, duration=1), "op-x")
        assert "No such file" in excinfo.value.diagnostics
        assert listener.states[-1] == ("op-x", "failed")

    @pytest.mark.asyncio
    async def test_failed_pass_removes_everything(self, make_orchestrator, media_dir, settings, listener):
        clip = touch(media_dir / "clip.mp4")
        out = media_dir / "titled.mp4"
        runner = FakeRunner(media={clip: {}}, fail_on=2)

        with pytest.raises(SubprocessFailure) as excinfo:
            await make_orchestrator(runner).run(
                AddTextRequest(input_path=clip, text="Hi", start=2, end=5, output_path=str(out)), "op-f",
            )

        assert excinfo.value.exit_code == 1
        assert "Error while opening encoder" in excinfo.value.diagnostics
        assert "encode window" in excinfo.value.message
        assert len(runner.ffmpeg_calls) == 2
        assert not out.exists()
        assert scratch_contents(settings) == []
        assert Path(clip).read_bytes() == b"media"
        assert listener.states[-1] == ("op-f", "failed")

    @pytest.mark.asyncio
    async def test_failed_in_place_edit_keeps_original(self, make_orchestrator, media_dir):
        clip = touch(media_dir / "clip.mp4")
        runner = FakeRunner(media={clip: {}}, fail_on=1)

        with pytest.raises(SubprocessFailure):
            await make_orchestrator(runner).run(
                TrimRequest(input_path=clip, start=0, duration=1, output_path=clip)
            )

        assert Path(clip).read_bytes() == b"media"
        assert leftover_temp_files(media_dir) == []

    @pytest.mark.asyncio
    async def test_finalize_failure_keeps_staging_file(self, make_orchestrator, media_dir, monkeypatch):
        clip = touch(media_dir / "clip.mp4")
        runner = FakeRunner(media={clip: {}})

        def locked(src, dst):
            raise PermissionError(13, "file in use", dst)

        monkeypatch.setattr("clipdeck.core.orchestrator.os.replace", locked)

        with pytest.raises(FinalizeError) as excinfo:
            await make_orchestrator(runner).run(
                TrimRequest(input_path=clip, start=0, duration=1, output_path=clip)
            )

        staged = excinfo.value.staging_path
        assert staged and os.path.exists(staged)
        assert Path(staged).read_bytes() == b"transcoded"
        assert Path(clip).read_bytes() == b"media"

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_logged(self, make_orchestrator, media_dir, monkeypatch, caplog):
        silent = touch(media_dir / "silent.mp4")
        loud = touch(media_dir / "loud.mp4")
        runner = FakeRunner(media={silent: {"audio": False}, loud: {}})
        real_remove = os.remove

        def sticky_remove(path):
            if "backfill_" in str(path):
                raise PermissionError(13, "locked", path)
            real_remove(path)

        monkeypatch.setattr("clipdeck.core.orchestrator.os.remove", sticky_remove)

        with caplog.at_level(logging.WARNING, logger="clipdeck"):
            result = await make_orchestrator(runner).run(MergeVideosRequest(clip_paths=[silent, loud]))

        assert os.path.exists(result.output_path)
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert any("Could not delete temp file" in r.getMessage() for r in warnings)

    @pytest.mark.asyncio
    async def test_cancellation_marks_failed(self, make_orchestrator, media_dir, listener):
        clip = touch(media_dir / "clip.mp4")

        class HangingRunner(FakeRunner):
            async def run(self, spec, on_progress=None):
                if spec.description == "probe":
                    return await super().run(spec, on_progress)
                await asyncio.sleep(3600)

        task = asyncio.ensure_future(
            make_orchestrator(HangingRunner(media={clip: {}})).run(
                TrimRequest(input_path=clip, start=0, duration=1), "op-c",
            )
        )
        while ("op-c", "running[1/1]") not in listener.states:
            await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert listener.states[-1] == ("op-c", "failed")


class TestRunAll:

    @pytest.mark.asyncio
    async def test_independent_operations(self, make_orchestrator, media_dir):
        clip = touch(media_dir / "clip.mp4")
        runner = FakeRunner(media={clip: {}})
        requests = [
            TrimRequest(input_path=clip, start=0, duration=1, output_path=str(media_dir / "first.mp4")),
            TrimRequest(input_path=str(media_dir / "missing.mp4"), start=0, duration=1),
            TrimRequest(input_path=clip, start=2, duration=1, output_path=str(media_dir / "second.mp4")),
        ]

        results = await run_all(make_orchestrator(runner), requests)

        assert isinstance(results[0], OperationResult)
        assert isinstance(results[1], InvalidParameters)
        assert isinstance(results[2], OperationResult)
        assert len(runner.ffmpeg_calls) == 2
