"""Unit tests for video merging."""

import pytest

from clipdeck.errors import InvalidParameters
from clipdeck.operations.multi_input import transition_effect, xfade_offsets
from clipdeck.operations.requests import MergeVideosRequest

from conftest import make_probe


class TestOffsets:

    def test_two_clips(self):
        assert xfade_offsets([5.0, 10.0], 1.0) == [4.0]

    def test_three_clips(self):
        assert xfade_offsets([5.0, 10.0, 4.0], 1.0) == [4.0, 13.0]

    def test_clamped_non_negative(self):
        assert xfade_offsets([0.5, 10.0], 1.0) == [0.0]


class TestTransitionEffect:

    @pytest.mark.parametrize("name,effect", [
        ("none", None), ("concat", None), ("", None),
        ("fade", "fade"), ("xfade-wipeleft", "wipeleft"), ("XFADE-Dissolve", "dissolve"),
    ])
    def test_names(self, name, effect):
        assert transition_effect(name) == effect

    @pytest.mark.parametrize("name", ["spin", "xfade-", "xfade-a;b"])
    def test_rejected(self, name):
        with pytest.raises(InvalidParameters):
            transition_effect(name)


class TestMergeVideos:

    def test_plain_concat(self, build_plan):
        request = MergeVideosRequest(clip_paths=["a.mp4", "b.mp4"])
        plan = build_plan(request, make_probe("a.mp4", 5.0), make_probe("b.mp4", 10.0))

        assert len(plan.passes) == 1
        spec = plan.passes[0]
        assert "[v0][a0][v1][a1]concat=n=2:v=1:a=1[vout][aout]" in spec.filter_graph
        assert spec.option("-map") == ["[vout]", "[aout]"]
        assert spec.option("-movflags") == ["+faststart"]

    def test_clips_are_normalised(self, build_plan):
        request = MergeVideosRequest(clip_paths=["a.mp4", "b.mp4"])
        graph = build_plan(request, make_probe("a.mp4"), make_probe("b.mp4", width=640, height=480)).passes[0].filter_graph

        for i in range(2):
            assert (
                f"[{i}:v]scale=w=1920:h=1080:force_original_aspect_ratio=decrease,"
                f"pad=1920:1080:(ow-iw)/2:(oh-ih)/2,setsar=1,fps=30,format=yuv420p[v{i}]"
            ) in graph
            assert (
                f"[{i}:a]aresample=48000,aformat=sample_rates=48000:channel_layouts=stereo[a{i}]"
            ) in graph

    def test_crossfade_backfills_silent_clip(self, build_plan, tmp_path):
        request = MergeVideosRequest(
            clip_paths=["silent.mp4", "clip.mp4"], transition="fade", transition_duration=1,
        )
        plan = build_plan(
            request,
            make_probe("silent.mp4", 5.0, audio=False),
            make_probe("clip.mp4", 10.0),
        )

        assert len(plan.passes) == 2
        backfill, merge = plan.passes
        assert backfill.description == "backfill silent track"
        assert backfill.output_path == str(tmp_path / "work" / "backfill_0.mp4")
        assert plan.temp_artifacts == [backfill.output_path]

        assert merge.option("-i") == [backfill.output_path, "clip.mp4"]
        assert "[v0][v1]xfade=transition=fade:duration=1:offset=4[vout]" in merge.filter_graph
        assert "[a0][a1]acrossfade=d=1[aout]" in merge.filter_graph
        assert merge.option("-map") == ["[vout]", "[aout]"]

    def test_three_clip_xfade_chain(self, build_plan):
        request = MergeVideosRequest(
            clip_paths=["a.mp4", "b.mp4", "c.mp4"], transition="xfade-wipeleft", transition_duration=0.5,
        )
        graph = build_plan(
            request, make_probe("a.mp4", 4.0), make_probe("b.mp4", 6.0), make_probe("c.mp4", 3.0),
        ).passes[0].filter_graph

        assert "[v0][v1]xfade=transition=wipeleft:duration=0.5:offset=3.5[x1]" in graph
        assert "[x1][v2]xfade=transition=wipeleft:duration=0.5:offset=9[vout]" in graph
        assert "[a0][a1]acrossfade=d=0.5[ax1];[ax1][a2]acrossfade=d=0.5[aout]" in graph

    def test_without_backfill_drops_audio(self, build_plan):
        request = MergeVideosRequest(clip_paths=["a.mp4", "b.mp4"], backfill_audio=False)
        plan = build_plan(request, make_probe("a.mp4", audio=False), make_probe("b.mp4"))

        assert len(plan.passes) == 1
        spec = plan.passes[0]
        assert ":a]" not in spec.filter_graph
        assert spec.option("-map") == ["[vout]"]
        assert "-an" in spec.argv

    def test_transition_longer_than_clip(self, build_plan):
        request = MergeVideosRequest(clip_paths=["a.mp4", "b.mp4"], transition="fade", transition_duration=3)
        with pytest.raises(InvalidParameters, match="shortest"):
            build_plan(request, make_probe("a.mp4", 2.0), make_probe("b.mp4", 10.0))

    def test_audio_only_clip_rejected(self, build_plan):
        request = MergeVideosRequest(clip_paths=["a.mp4", "b.mp3"])
        with pytest.raises(InvalidParameters, match="no video"):
            build_plan(request, make_probe("a.mp4"), make_probe("b.mp3", video=False))

    def test_webm_clip_backfills_into_mp4(self, build_plan, tmp_path):
        request = MergeVideosRequest(clip_paths=["silent.webm", "clip.mp4"], transition="fade")
        plan = build_plan(
            request,
            make_probe("silent.webm", 5.0, audio=False),
            make_probe("clip.mp4", 10.0),
        )

        backfill = plan.passes[0]
        assert backfill.output_path == str(tmp_path / "work" / "backfill_0.mp4")
        assert backfill.option("-c:a") == ["aac"]
        assert backfill.option("-c:v") == ["copy"]
        assert plan.passes[1].option("-i")[0] == backfill.output_path
