"""Video and audio encoding definitions plus export presets."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ...config import AudioSettings


class VideoCodec(str, Enum):
    """Video codecs clipdeck emits."""
    H264 = "libx264"
    COPY = "copy"


class AudioCodec(str, Enum):
    """Audio codecs clipdeck emits."""
    AAC = "aac"
    MP3 = "libmp3lame"
    COPY = "copy"


class PixelFormat(str, Enum):
    """Common pixel formats."""
    YUV420P = "yuv420p"


class VideoFormat(BaseModel):
    """Video encoding settings."""
    codec: VideoCodec = VideoCodec.H264
    crf: Optional[int] = None
    preset: Optional[str] = None
    pixel_format: Optional[PixelFormat] = PixelFormat.YUV420P

    def to_ffmpeg_args(self) -> list[str]:
        """Convert to FFMPEG command arguments."""
        args = ["-c:v", self.codec.value]
        if self.codec == VideoCodec.COPY:
            return args

        if self.crf is not None:
            args.extend(["-crf", str(self.crf)])
        if self.preset:
            args.extend(["-preset", self.preset])
        if self.pixel_format:
            args.extend(["-pix_fmt", self.pixel_format.value])

        return args


class AudioFormat(BaseModel):
    """Audio encoding settings."""
    codec: str = AudioCodec.AAC.value
    bitrate: Optional[str] = None
    sample_rate: Optional[int] = None
    channels: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: AudioSettings) -> "AudioFormat":
        return cls(
            codec=settings.codec,
            bitrate=settings.bitrate,
            sample_rate=settings.sample_rate,
            channels=settings.channels,
        )

    def to_ffmpeg_args(self) -> list[str]:
        """Convert to FFMPEG command arguments."""
        args = ["-c:a", self.codec]

        if self.bitrate:
            args.extend(["-b:a", self.bitrate])

        if self.sample_rate:
            args.extend(["-ar", str(self.sample_rate)])

        if self.channels:
            args.extend(["-ac", str(self.channels)])

        return args


class Resolution(BaseModel):
    width: Optional[int] = None
    height: Optional[int] = None


# Export presets offered by the editor's export dialog
QUALITY_PRESETS = {
    "highest": VideoFormat(crf=18, preset="slow"),
    "high": VideoFormat(crf=23, preset="medium"),
    "medium": VideoFormat(crf=28, preset="fast"),
    "low": VideoFormat(crf=32, preset="veryfast"),
}

RESOLUTION_PRESETS = {
    "original": Resolution(),
    "1080p": Resolution(width=1920, height=1080),
    "720p": Resolution(width=1280, height=720),
    "480p": Resolution(width=854, height=480),
}

FPS_PRESETS: dict[str, Optional[int]] = {
    "original": None,
    "60": 60,
    "30": 30,
    "24": 24,
    "15": 15,
}
