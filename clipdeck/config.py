"""Runtime configuration for clipdeck.

Settings are plain pydantic models.  ``load_settings`` reads an optional YAML
file and then applies ``CLIPDECK_*`` environment overrides, e.g.::

    # clipdeck.yaml
    ffmpeg_path: /opt/ffmpeg/bin/ffmpeg
    scratch_dir: /var/tmp/clipdeck
    audio:
      bitrate: 256k
    merge:
      width: 1280
      height: 720
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import InvalidParameters

logger = logging.getLogger("clipdeck")

_ENV_PREFIX = "CLIPDECK_"

# Environment variable -> dotted settings key
_ENV_KEYS = {
    "FFMPEG": "ffmpeg_path",
    "FFPROBE": "ffprobe_path",
    "FFMPEG_DIR": "ffmpeg_dir",
    "SCRATCH_DIR": "scratch_dir",
    "DEFAULT_FONT": "text.font",
}


class AudioSettings(BaseModel):
    """Encoding used whenever an operation re-encodes an audio track."""
    codec: str = "aac"
    bitrate: str = "192k"
    sample_rate: int = Field(default=48000, gt=0)
    channels: int = Field(default=2, ge=1)


class MergeSettings(BaseModel):
    """Common canvas every clip is normalised to before merging."""
    width: int = Field(default=1920, gt=0)
    height: int = Field(default=1080, gt=0)
    fps: int = Field(default=30, gt=0)
    crf: int = Field(default=23, ge=0, le=51)
    preset: str = "medium"


class WaveformSettings(BaseModel):
    """Look of the generated waveform image."""
    width: int = Field(default=1200, gt=0)
    height: int = Field(default=300, gt=0)
    color: str = "#667eea"
    scale: str = "log"


class TextSettings(BaseModel):
    """Defaults for drawtext overlays."""
    font: str = "Sans"
    font_size: int = Field(default=48, gt=0)
    font_color: str = "white"


class Settings(BaseModel):
    """Top-level clipdeck configuration."""
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    ffmpeg_dir: Optional[str] = Field(
        default=None,
        description="Directory holding bundled ffmpeg/ffprobe binaries, checked before PATH.",
    )
    scratch_dir: str = Field(default_factory=tempfile.gettempdir)
    audio: AudioSettings = Field(default_factory=AudioSettings)
    merge: MergeSettings = Field(default_factory=MergeSettings)
    waveform: WaveformSettings = Field(default_factory=WaveformSettings)
    text: TextSettings = Field(default_factory=TextSettings)

    def resolve_binary(self, name: str) -> str:
        """Locate ``ffmpeg`` or ``ffprobe``.

        Order: explicit ``<name>_path`` setting, the bundled ``ffmpeg_dir``,
        then ``PATH``.  Falls back to the bare name so the spawn itself
        reports a missing executable.
        """
        explicit = getattr(self, f"{name}_path", None)
        if explicit:
            return explicit

        if self.ffmpeg_dir:
            for candidate in (name, f"{name}.exe"):
                bundled = Path(self.ffmpeg_dir) / candidate
                if bundled.is_file():
                    return str(bundled)

        return shutil.which(name) or name

    @property
    def ffmpeg(self) -> str:
        return self.resolve_binary("ffmpeg")

    @property
    def ffprobe(self) -> str:
        return self.resolve_binary("ffprobe")


def _set_dotted(data: dict[str, Any], dotted: str, value: Any) -> None:
    node = data
    *parents, leaf = dotted.split(".")
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = value


def load_settings(
    path: Optional[str | Path] = None,
    environ: Optional[dict[str, str]] = None,
) -> Settings:
    """Build :class:`Settings` from an optional YAML file plus environment.

    Args:
        path: YAML file to read.  Missing files are an error; ``None`` skips
            the file entirely.
        environ: Environment mapping, defaults to ``os.environ``.

    Raises:
        InvalidParameters: If the file is not a mapping or fails validation.
    """
    data: dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        with open(path, "r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise InvalidParameters(f"Config file {path}: top-level must be a mapping")
        data.update(loaded)
        logger.debug("Loaded settings from %s", path)

    env = os.environ if environ is None else environ
    for suffix, key in _ENV_KEYS.items():
        value = env.get(_ENV_PREFIX + suffix)
        if value:
            _set_dotted(data, key, value)

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise InvalidParameters(f"Invalid settings: {exc}") from exc
