"""Media probing and format handling."""

from .analyzer import MediaAnalyzer, MediaProbeResult
from .formats import AudioFormat, VideoFormat

__all__ = [
    "MediaAnalyzer",
    "MediaProbeResult",
    "AudioFormat",
    "VideoFormat",
]
