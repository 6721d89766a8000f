"""Tests for settings loading and the application context."""

import logging

import pytest

from clipdeck import check_dependencies
from clipdeck.config import Settings, load_settings
from clipdeck.context import AppContext, LoggingListener
from clipdeck.errors import InvalidParameters


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings(environ={})
        assert settings.audio.codec == "aac"
        assert settings.audio.sample_rate == 48000
        assert settings.merge.width == 1920
        assert settings.text.font == "Sans"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "clipdeck.yaml"
        path.write_text(
            "ffmpeg_path: /opt/ffmpeg/bin/ffmpeg\n"
            "merge:\n"
            "  fps: 25\n"
            "  crf: 20\n"
            "waveform:\n"
            "  color: '#ff0000'\n",
            encoding="utf-8",
        )
        settings = load_settings(path, environ={})
        assert settings.ffmpeg == "/opt/ffmpeg/bin/ffmpeg"
        assert settings.merge.fps == 25
        assert settings.merge.crf == 20
        assert settings.merge.width == 1920

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_settings(path, environ={}) == Settings()

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "clipdeck.yaml"
        path.write_text("scratch_dir: /from/file\n", encoding="utf-8")
        env = {
            "CLIPDECK_SCRATCH_DIR": str(tmp_path),
            "CLIPDECK_FFPROBE": "/usr/local/bin/ffprobe",
            "CLIPDECK_DEFAULT_FONT": "DejaVu Sans",
        }
        settings = load_settings(path, environ=env)
        assert settings.scratch_dir == str(tmp_path)
        assert settings.ffprobe == "/usr/local/bin/ffprobe"
        assert settings.text.font == "DejaVu Sans"

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(InvalidParameters, match="mapping"):
            load_settings(path, environ={})

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("merge:\n  crf: 99\n", encoding="utf-8")
        with pytest.raises(InvalidParameters, match="Invalid settings"):
            load_settings(path, environ={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml", environ={})


class TestResolveBinary:

    def test_bundled_directory(self, tmp_path):
        (tmp_path / "ffmpeg").write_bytes(b"")
        settings = Settings(ffmpeg_dir=str(tmp_path))
        assert settings.ffmpeg == str(tmp_path / "ffmpeg")

    def test_explicit_path_wins(self, tmp_path):
        (tmp_path / "ffmpeg").write_bytes(b"")
        settings = Settings(ffmpeg_dir=str(tmp_path), ffmpeg_path="/custom/ffmpeg")
        assert settings.ffmpeg == "/custom/ffmpeg"

    def test_falls_back_to_bare_name(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PATH", str(tmp_path))
        assert Settings().resolve_binary("ffprobe") == "ffprobe"

    def test_check_dependencies_reports_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PATH", str(tmp_path))
        issues = check_dependencies(Settings())
        assert len(issues) == 2
        assert "CLIPDECK_FFMPEG" in issues[0]


class TestAppContext:

    def test_listener_failure_is_logged(self, caplog):
        class Broken:
            def on_progress(self, operation_id, text):
                raise RuntimeError("boom")

            def on_state(self, operation_id, state):
                raise RuntimeError("boom")

        seen = []

        class Good:
            def on_progress(self, operation_id, text):
                seen.append(text)

            def on_state(self, operation_id, state):
                seen.append(state)

        context = AppContext()
        context.subscribe(Broken())
        context.subscribe(Good())

        with caplog.at_level(logging.ERROR, logger="clipdeck"):
            context.emit_progress("op", "frame=1")
            context.emit_state("op", "done")

        assert seen == ["frame=1", "done"]
        assert len([r for r in caplog.records if "listener" in r.getMessage()]) == 2

    def test_unsubscribe(self):
        seen = []

        class Good:
            def on_progress(self, operation_id, text):
                seen.append(text)

            def on_state(self, operation_id, state):
                pass

        listener = Good()
        context = AppContext()
        context.subscribe(listener)
        context.unsubscribe(listener)
        context.unsubscribe(listener)
        context.emit_progress("op", "frame=1")
        assert seen == []

    def test_logging_listener(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="clipdeck"):
            listener = LoggingListener()
            listener.on_progress("op-1", "frame=5")
            listener.on_state("op-1", "running[1/2]")

        messages = [r.getMessage() for r in caplog.records]
        assert "[op-1] frame=5" in messages
        assert "[op-1] -> running[1/2]" in messages
