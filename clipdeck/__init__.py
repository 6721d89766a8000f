"""
clipdeck: FFmpeg orchestration for a desktop video/audio editor

Turns typed edit requests (trim, merge, overlays, filters, silence
insertion, format conversion) into FFmpeg invocations, runs them and
stages/replaces the outputs.

Example usage:
    >>> from clipdeck import Orchestrator, parse_request
    >>> request = parse_request({"kind": "trim", "input_path": "clip.mp4",
    ...                          "start": 2, "duration": 3})
    >>> result = await Orchestrator().run(request)
"""

import logging

__version__ = "1.0.0"

from .config import Settings, load_settings
from .context import AppContext, LoggingListener, ProgressListener
from .core.orchestrator import OperationResult, OperationState, Orchestrator
from .errors import (
    ClipdeckError,
    FinalizeError,
    InvalidParameters,
    ProbeError,
    SpawnError,
    SubprocessFailure,
    UnsupportedOperation,
)
from .operations import build, parse_request

logging.getLogger("clipdeck").addHandler(logging.NullHandler())

__all__ = [
    "AppContext",
    "ClipdeckError",
    "FinalizeError",
    "InvalidParameters",
    "LoggingListener",
    "OperationResult",
    "OperationState",
    "Orchestrator",
    "ProbeError",
    "ProgressListener",
    "Settings",
    "SpawnError",
    "SubprocessFailure",
    "UnsupportedOperation",
    "build",
    "check_dependencies",
    "load_settings",
    "parse_request",
]


def check_dependencies(settings: Settings | None = None) -> list[str]:
    """Report missing external tools as human-readable strings."""
    import shutil

    settings = settings or Settings()
    issues = []

    for name in ("ffmpeg", "ffprobe"):
        binary = settings.resolve_binary(name)
        if not shutil.which(binary):
            issues.append(f"{name} not found ({binary}). Install FFmpeg or set CLIPDECK_{name.upper()}.")

    return issues
